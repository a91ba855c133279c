"""cpnet.workflow -- Temporal.io paper maturity workflow."""

from cpnet.workflow.types import MaturityInput as MaturityInput
from cpnet.workflow.types import MaturityOutcome as MaturityOutcome
from cpnet.workflow.types import MaturityResult as MaturityResult
from cpnet.workflow.types import RedeemInput as RedeemInput
from cpnet.workflow.types import RedeemOutput as RedeemOutput
from cpnet.workflow.types import RedemptionResult as RedemptionResult
from cpnet.workflow.types import SweepInput as SweepInput
from cpnet.workflow.types import SweepOutput as SweepOutput
from cpnet.workflow.types import SweepResult as SweepResult
