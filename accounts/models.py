from dataclasses import dataclass, asdict
from typing import Any, Mapping, Optional

from accounts.repository_base import RowInsertError


@dataclass(frozen=True)
class AccountRow:
    referenceid: str
    manager: Optional[str] = None
    tsm: Optional[str] = None  # supervisor
    companyname: Optional[str] = None
    contactperson: Optional[str] = None
    contactnumber: Optional[str] = None
    emailaddress: Optional[str] = None
    typeclient: Optional[str] = None
    address: Optional[str] = None
    deliveryaddress: Optional[str] = None
    area: Optional[str] = None
    status: Optional[str] = None

    @staticmethod
    def from_payload(payload: Any) -> "AccountRow":
        if not isinstance(payload, Mapping):
            raise RowInsertError("Account row must be a JSON object")
        if not payload.get("referenceid"):
            raise RowInsertError("Account row is missing referenceid")

        return AccountRow(
            referenceid=payload["referenceid"],
            # empty manager/supervisor are stored as NULL, not ""
            manager=payload.get("manager") or None,
            tsm=payload.get("tsm") or None,
            companyname=payload.get("companyname"),
            contactperson=payload.get("contactperson"),
            contactnumber=payload.get("contactnumber"),
            emailaddress=payload.get("emailaddress"),
            typeclient=payload.get("typeclient"),
            address=payload.get("address"),
            deliveryaddress=payload.get("deliveryaddress"),
            area=payload.get("area"),
            status=payload.get("status"),
        )

    def to_dict(self) -> dict:
        return asdict(self)
