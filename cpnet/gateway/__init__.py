"""cpnet.gateway -- transaction payload parsing and request types."""

from cpnet.gateway.parser import parse_assign_did as parse_assign_did
from cpnet.gateway.parser import parse_create_paper as parse_create_paper
from cpnet.gateway.parser import parse_list_on_market as parse_list_on_market
from cpnet.gateway.parser import parse_purchase_paper as parse_purchase_paper
from cpnet.gateway.parser import parse_redeem_paper as parse_redeem_paper
from cpnet.gateway.types import AssignDidRequest as AssignDidRequest
from cpnet.gateway.types import CreatePaperRequest as CreatePaperRequest
from cpnet.gateway.types import ListOnMarketRequest as ListOnMarketRequest
from cpnet.gateway.types import PublicDid as PublicDid
from cpnet.gateway.types import PurchasePaperRequest as PurchasePaperRequest
from cpnet.gateway.types import RedeemPaperRequest as RedeemPaperRequest
