"""
Pydantic models for the HotPay gateway.

Notification field names are the gateway's own (Polish) form keys:
  ID_ZAMOWIENIA – our order id
  ID_PLATNOSCI  – HotPay transaction id
  KWOTA         – amount, "19.99"
  SEKRET        – echoed service secret; not parsed, the configured
                  HOTPAY_SEKRET is what the HASH is checked against
  SECURE        – gateway-side security token
  HASH          – sha256 hex digest
"""

from pydantic import BaseModel, ConfigDict, Field

from wishlist_payments.schemas.order import CamelModel


class HotPayNotification(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    order_id: str = Field(alias="ID_ZAMOWIENIA", min_length=1)
    status: str = Field(alias="STATUS", min_length=1)
    hash: str | None = Field(None, alias="HASH")
    amount: str = Field("", alias="KWOTA")
    payment_id: str = Field("", alias="ID_PLATNOSCI")
    secure: str = Field("", alias="SECURE")


class HotPayPaymentParams(BaseModel):
    """Signed form fields the browser posts to HotPay."""

    model_config = ConfigDict(populate_by_name=True)

    sekret: str = Field(alias="SEKRET")
    kwota: str = Field(alias="KWOTA")
    nazwa_uslugi: str = Field(alias="NAZWA_USLUGI")
    adres_www: str = Field(alias="ADRES_WWW")
    id_zamowienia: str = Field(alias="ID_ZAMOWIENIA")
    email: str = Field(alias="EMAIL")
    dane_osobowe: str = Field(alias="DANE_OSOBOWE")
    hash: str = Field(alias="HASH")


class CheckoutStatus(BaseModel):
    status_code: str = Field("SUCCESS", alias="statusCode")

    model_config = ConfigDict(populate_by_name=True)


class HotPayCheckoutResponse(CamelModel):
    order_id: str
    hotpay_url: str
    hotpay_params: HotPayPaymentParams
    status: CheckoutStatus = Field(default_factory=CheckoutStatus)
