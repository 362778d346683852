"""
Customer — who is buying.

An authenticated session wins. Otherwise the request must carry a guest
block with an email and isGuestCheckout set.
"""

import structlog

from stemshop.domain import Customer
from stemshop.errors import IdentityError, InfrastructureError
from stemshop.pipeline._graph import node
from stemshop.pipeline.nodes._input import DepsNode, RequestNode

logger = structlog.get_logger()


@node
class CustomerNode:
    def __init__(self, data: Customer) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: RequestNode, deps: DepsNode) -> "CustomerNode":
        req = request.data

        if req.session_user is not None:
            user = req.session_user
            return cls(Customer(email=user.email, user_id=user.id, name=user.name))

        guest = req.guest
        if guest is None or not guest.is_guest_checkout or not guest.email:
            logger.info("identity_missing", has_guest_block=guest is not None)
            raise IdentityError()

        try:
            user_id = await deps.data.users.find_id_by_email(guest.email)
        except Exception as e:
            raise InfrastructureError("user lookup failed", e) from e

        return cls(Customer(
            email=guest.email.lower(),
            user_id=user_id,
            name=req.shipping_address.full_name,
            is_guest=True,
        ))


__all__ = ("CustomerNode",)
