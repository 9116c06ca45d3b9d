class ListingIncomplete(Exception):
    """
    Raised when a listing cannot go LIVE.
    `missing` holds the field identifiers the client should highlight.
    """

    code = "LISTING_INCOMPLETE"

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"{self.code}: {', '.join(self.missing)}")
