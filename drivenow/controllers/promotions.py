from flask import Blueprint

from ..services.promotion_service import PromotionValidator
from ..utils.context import business_today, current_store
from ..utils.decorators import login_required
from ..utils.money import ZERO
from ..utils.payload import Payload
from ..utils.responses import ok

bp = Blueprint("promotions", __name__, url_prefix="/Promotions")


@bp.post("/validate")
@login_required
def validate_code():
    """
    Check a code against a subtotal without touching its usage count.
    An unusable code is still a 200; the answer is in `isValid` / `reason`.
    The window is checked as of `startDate`, or today when it is omitted.
    """
    p = Payload.from_request()
    code = p.get_str("promotionCode", required=True)
    sub_total = p.get_decimal("subTotal", required=True)
    start = p.get_date("startDate")
    if sub_total is not None and sub_total < ZERO:
        p.errors["subTotal"] = "subTotal must not be negative"
    p.validate()

    with current_store().reading() as uow:
        check = PromotionValidator.validate(uow, code, sub_total, start or business_today())
        return ok(check.to_dict())
