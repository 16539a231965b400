from ledgerly_recon.models.bank_transaction import BankTransaction
from ledgerly_recon.models.batch_stat import BatchStat, BatchSource, BatchAction
from ledgerly_recon.models.learned_default import LearnedDefault

__all__ = ["BankTransaction", "BatchStat", "BatchSource", "BatchAction", "LearnedDefault"]
