class UnknownLeadError(LookupError):
    """Raised when an operation names a lead id that is not in the ledger."""

    def __init__(self, lead_id: str):
        super().__init__(f"Unknown lead: {lead_id}")
        self.lead_id = lead_id


class UnknownMeetingError(LookupError):
    """Raised when an operator decision names a meeting that was never surfaced."""

    def __init__(self, meeting_id: str):
        super().__init__(f"Unknown surfaced meeting: {meeting_id}")
        self.meeting_id = meeting_id
