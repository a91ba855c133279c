"""cpnet.instrument -- commercial paper terms and lifecycle."""

from cpnet.instrument.paper import PAPER_TRANSITIONS as PAPER_TRANSITIONS
from cpnet.instrument.paper import CommercialPaper as CommercialPaper
from cpnet.instrument.paper import PaperStatus as PaperStatus
from cpnet.instrument.paper import PaperTerms as PaperTerms
from cpnet.instrument.paper import check_transition as check_transition
from cpnet.instrument.paper import settlement_price as settlement_price
