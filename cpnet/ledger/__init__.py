"""cpnet.ledger -- Ledger records, components and the trading engine."""

from cpnet.ledger.accounts import AccountLedger as AccountLedger
from cpnet.ledger.engine import TradingEngine as TradingEngine
from cpnet.ledger.events import AssignDidEvent as AssignDidEvent
from cpnet.ledger.events import CreatePaperEvent as CreatePaperEvent
from cpnet.ledger.events import LedgerEvent as LedgerEvent
from cpnet.ledger.events import ListOnMarketEvent as ListOnMarketEvent
from cpnet.ledger.events import PurchasePaperEvent as PurchasePaperEvent
from cpnet.ledger.events import RedeemPaperEvent as RedeemPaperEvent
from cpnet.ledger.events import WithdrawListingEvent as WithdrawListingEvent
from cpnet.ledger.market import MarketBook as MarketBook
from cpnet.ledger.onboarding import create_market as create_market
from cpnet.ledger.onboarding import open_account as open_account
from cpnet.ledger.onboarding import register_company as register_company
from cpnet.ledger.registry import PaperRegistry as PaperRegistry
from cpnet.ledger.registry import Redemption as Redemption
from cpnet.ledger.types import Account as Account
from cpnet.ledger.types import Company as Company
from cpnet.ledger.types import ListingBatch as ListingBatch
from cpnet.ledger.types import Market as Market
from cpnet.ledger.types import PaperListing as PaperListing
