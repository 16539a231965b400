from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from ledgerly_recon.models.bank_transaction import BankTransaction
from ledgerly_recon.schemas.bank_transaction import Transaction

_COLUMNS = [name for name in Transaction.model_fields]
_MONEY_COLUMNS = ("amount", "money_in", "money_out", "fee", "balance")


class TransactionRepository(Protocol):
    """Storage boundary for a company's transaction collection"""

    def load(self, company_id: str) -> List[Transaction]:
        ...

    def save(self, company_id: str, transactions: List[Transaction]) -> None:
        ...

    def clear(self, company_id: str) -> int:
        ...


def _strip_scale(value: Optional[Decimal]) -> Optional[Decimal]:
    """Undo the fixed column scale so 45.0000 reads back as 45"""
    if value is None:
        return None
    return Decimal(format(value.normalize(), "f"))


class SqlTransactionRepository:
    def __init__(self, db: Session):
        self.db = db

    def load(self, company_id: str) -> List[Transaction]:
        rows = self.db.query(BankTransaction).filter(
            BankTransaction.company_id == company_id
        ).order_by(BankTransaction.position).all()
        return [self._to_schema(row) for row in rows]

    def save(self, company_id: str, transactions: List[Transaction]) -> None:
        """Replace the company's stored collection with ``transactions``"""
        try:
            self.db.query(BankTransaction).filter(
                BankTransaction.company_id == company_id
            ).delete(synchronize_session=False)
            for position, t in enumerate(transactions):
                self.db.add(BankTransaction(company_id=company_id, position=position, **t.model_dump()))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def clear(self, company_id: str) -> int:
        deleted = self.db.query(BankTransaction).filter(
            BankTransaction.company_id == company_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    @staticmethod
    def _to_schema(row: BankTransaction) -> Transaction:
        values = {name: getattr(row, name) for name in _COLUMNS}
        for name in _MONEY_COLUMNS:
            values[name] = _strip_scale(values[name])
        values["allocated"] = bool(values["allocated"])
        return Transaction(**values)
