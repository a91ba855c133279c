"""cpnet.infra -- Infrastructure protocols, adapters, and configuration."""

from cpnet.infra.config import EVENT_TOPICS as EVENT_TOPICS
from cpnet.infra.config import DiscountConvention as DiscountConvention
from cpnet.infra.config import LedgerPolicy as LedgerPolicy
from cpnet.infra.config import RedemptionFunding as RedemptionFunding
from cpnet.infra.config import TransactionPolicy as TransactionPolicy
from cpnet.infra.config import WorkerConfig as WorkerConfig
from cpnet.infra.identity import ContextIdentityResolver as ContextIdentityResolver
from cpnet.infra.memory_adapter import InMemoryEventBus as InMemoryEventBus
from cpnet.infra.memory_adapter import InMemoryLedgerStore as InMemoryLedgerStore
from cpnet.infra.protocols import EventBus as EventBus
from cpnet.infra.protocols import IdentityResolver as IdentityResolver
from cpnet.infra.protocols import LedgerStore as LedgerStore
from cpnet.infra.protocols import LedgerTransaction as LedgerTransaction
from cpnet.infra.protocols import VersionedRecord as VersionedRecord
