import traceback


class PaymentError(Exception):
    def __init__(self, message: str, status_code: int = 400, stack_trace: bool = False):
        self.message = message
        self.status_code = status_code
        self.stack_trace = traceback.format_exc() if stack_trace else None
        super().__init__(self.message)


class WebhookMisconfiguredError(PaymentError):
    def __init__(self):
        super().__init__(
            "Server misconfigured: TSARA_WEBHOOK_SECRET is not set", status_code=500)


class MissingSignatureError(PaymentError):
    def __init__(self):
        super().__init__("Missing signature header", status_code=401)


class InvalidSignatureError(PaymentError):
    def __init__(self):
        super().__init__("Invalid signature", status_code=401)


class MissingEventIdError(PaymentError):
    def __init__(self):
        super().__init__("Missing event ID", status_code=400)


class InvalidPayloadError(PaymentError):
    def __init__(self, message: str = "Invalid JSON payload"):
        super().__init__(message, status_code=400)


class WebhookEventNotFoundError(PaymentError):
    def __init__(self):
        super().__init__("Webhook event not found", status_code=404)


class IllegalTransitionError(PaymentError):
    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Illegal payment transition {current_status} -> {target_status}", status_code=409)


class AdminAuthError(PaymentError):
    def __init__(self):
        super().__init__("Invalid admin token", status_code=401)


class DuplicateEventError(Exception):
    """Another delivery of the same provider event already holds its ledger row."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Webhook event {event_id} is already being processed")
