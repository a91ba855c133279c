"""cpnet.core -- public API for all core types."""

from cpnet.core.errors import AuthorizationError as AuthorizationError
from cpnet.core.errors import ConcurrentModificationError as ConcurrentModificationError
from cpnet.core.errors import ConflictReason as ConflictReason
from cpnet.core.errors import CpnetError as CpnetError
from cpnet.core.errors import CurrencyMismatchError as CurrencyMismatchError
from cpnet.core.errors import FieldViolation as FieldViolation
from cpnet.core.errors import InsufficientFundsError as InsufficientFundsError
from cpnet.core.errors import PersistenceError as PersistenceError
from cpnet.core.errors import StateConflictError as StateConflictError
from cpnet.core.errors import TradingError as TradingError
from cpnet.core.errors import ValidationError as ValidationError
from cpnet.core.errors import VersionConflictError as VersionConflictError
from cpnet.core.identifiers import Cusip as Cusip
from cpnet.core.identifiers import Did as Did
from cpnet.core.money import CPNET_DECIMAL_CONTEXT as CPNET_DECIMAL_CONTEXT
from cpnet.core.money import Money as Money
from cpnet.core.money import NonEmptyStr as NonEmptyStr
from cpnet.core.money import NonNegativeDecimal as NonNegativeDecimal
from cpnet.core.money import PositiveDecimal as PositiveDecimal
from cpnet.core.party import CallerIdentity as CallerIdentity
from cpnet.core.party import ParticipantKind as ParticipantKind
from cpnet.core.party import company_identity as company_identity
from cpnet.core.party import trader_identity as trader_identity
from cpnet.core.result import Err as Err
from cpnet.core.result import Ok as Ok
from cpnet.core.result import Result as Result
from cpnet.core.result import unwrap as unwrap
from cpnet.core.serialization import canonical_bytes as canonical_bytes
from cpnet.core.serialization import content_hash as content_hash
from cpnet.core.serialization import derive_id as derive_id
from cpnet.core.types import FrozenMap as FrozenMap
from cpnet.core.types import UtcDatetime as UtcDatetime
