"""Exceptions raised while retrieving data and generating catalogs."""


class ScraperError(Exception):
    """Exception raised when fetching from HarnessNation fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CooldownAborted(Exception):
    """Raised when a throttle cooldown is cancelled by the caller."""

    def __init__(self, message: str = "Aborted by the user"):
        super().__init__(message)


class HorseMismatchError(LookupError):
    """Raised when a fetched profile does not belong to the requested horse."""

    def __init__(self, horse_id: int):
        self.horse_id = horse_id
        super().__init__(f"Failed to generate sale catalog: could not parse info for horse {horse_id}")


class CatalogAlreadyRunningError(RuntimeError):
    """Raised when a catalog is requested while another one is being generated."""

    MESSAGE = (
        "A pedigree catalog is already being generated. Please wait for it to finish "
        "before starting a new one. If you are certain there is not one running, "
        "try restarting the service."
    )

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class UnsupportedPlatformError(RuntimeError):
    """Raised when catalog generation is disabled on this deployment."""

    pass
