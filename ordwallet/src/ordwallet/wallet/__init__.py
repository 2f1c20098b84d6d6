from ordwallet.wallet.base import Wallet
from ordwallet.wallet.models import UTXOInfo
from ordwallet.wallet.service import WalletService
from ordwallet.wallet.signing import TransactionSigningError

__all__ = ["TransactionSigningError", "UTXOInfo", "Wallet", "WalletService"]
