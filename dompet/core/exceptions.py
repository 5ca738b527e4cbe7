"""
Application exceptions.

Entitlement failures and reconciliation failures carry their own HTTP status
code and response body. `dompet.main` registers a handler that renders
`body` as top-level JSON, so clients can route on the `action` hint.
"""

from typing import Any, Optional


class DompetError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = dict(details)
        super().__init__(message)

    @property
    def body(self) -> dict[str, Any]:
        return {"message": self.message, **self.details}

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


# ─────────────────────────────────────────────────────────────────────────────
# Entitlement
# ─────────────────────────────────────────────────────────────────────────────


class EntitlementError(DompetError):
    """A request was denied by authentication, household or plan checks."""

    reason: str = "denied"
    action: Optional[str] = None

    @property
    def body(self) -> dict[str, Any]:
        body = {"message": self.message, **self.details}
        if self.action and "action" not in body:
            body["action"] = self.action
        return body


class Unauthenticated(EntitlementError):
    status_code = 401
    reason = "unauthenticated"

    def __init__(self, message: str = "Unauthenticated"):
        super().__init__(message)


class EmailNotVerified(EntitlementError):
    status_code = 403
    reason = "email_not_verified"
    action = "verify_email"

    def __init__(self, email: str):
        super().__init__(
            "Please verify your email to access this feature", email=email
        )


class NoHousehold(EntitlementError):
    status_code = 403
    reason = "no_household"

    def __init__(self, message: str = "No household found"):
        super().__init__(message)


class NoSubscription(EntitlementError):
    status_code = 402
    reason = "no_subscription"
    action = "subscribe"

    def __init__(self, message: str = "No subscription found", **details: Any):
        super().__init__(message, **details)


class InactiveSubscription(EntitlementError):
    status_code = 402
    reason = "inactive_subscription"

    def __init__(self, status: str, message: Optional[str] = None, **details: Any):
        self.action = "renew" if status == "expired" else "reactivate"
        super().__init__(
            message or f"Subscription is {status}. Access is limited to read-only.",
            status=status,
            **details,
        )


class ModuleNotEntitled(EntitlementError):
    status_code = 403
    reason = "module_not_in_plan"
    action = "upgrade_plan"

    def __init__(
        self,
        module: str,
        current_plan: str,
        required_plans: list[str],
        upgrade_message: Optional[str] = None,
    ):
        self.module = module
        super().__init__(
            f"The '{module}' module is not available on your current plan. "
            "Upgrade your plan to access it.",
            current_plan=current_plan,
            required_plans=list(required_plans),
            upgrade_message=upgrade_message,
        )


class LimitExceeded(EntitlementError):
    status_code = 429
    reason = "limit_reached"
    action = "upgrade_plan"

    def __init__(
        self,
        feature: str,
        current_usage: int,
        limit: int,
        upgrade_message: Optional[str] = None,
    ):
        self.feature = feature
        label = feature.replace("_", " ").capitalize()
        super().__init__(
            f"{label} limit reached",
            current_usage=current_usage,
            limit=limit,
            remaining=0,
            upgrade_message=upgrade_message,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Reconciliation
# ─────────────────────────────────────────────────────────────────────────────


class ReconciliationError(DompetError):
    """Applying a payment status event failed."""


class InvalidStatusTransition(ReconciliationError):
    """A status value or transition outside the allowed table."""

    status_code = 422

    def __init__(self, entity: str, current_status: Any, requested_status: Any):
        self.entity = entity
        self.current_status = _status_value(current_status)
        self.requested_status = _status_value(requested_status)
        super().__init__(
            f"Invalid {entity} status transition: "
            f"{self.current_status!s} -> {self.requested_status!s}",
            current_status=self.current_status,
            requested_status=self.requested_status,
        )


class DuplicateReconciliation(ReconciliationError):
    """The payment already carries the requested status; nothing to apply."""

    status_code = 200

    def __init__(self, payment_id: Any, status: Any):
        super().__init__(
            "Payment already processed",
            payment_id=str(payment_id),
            status=_status_value(status),
        )


class PaymentNotFound(ReconciliationError):
    status_code = 404

    def __init__(self, payment_id: Any):
        super().__init__("Payment not found", payment_id=str(payment_id))


def _status_value(status: Any) -> Any:
    return getattr(status, "value", status)
