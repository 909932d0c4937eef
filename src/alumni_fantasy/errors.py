from typing import Iterable, List, Optional


class AlumniFantasyError(Exception):
    pass


class ConfigurationError(AlumniFantasyError):
    pass


class NotYetAvailableError(AlumniFantasyError):
    """An upstream dataset has not been published yet.

    Expected during the week; callers fall back to a stale copy or report
    a pending state rather than failing the request.
    """

    def __init__(self, dataset: str, message: str = ""):
        self.dataset = str(dataset)
        super().__init__(message or f"{self.dataset} is not available yet")


class StatsNotAvailableError(NotYetAvailableError):
    def __init__(self, season: int, week: int, dataset: str = "player_stats"):
        self.season = int(season)
        self.week = int(week)
        super().__init__(dataset, f"stats for season {self.season} week {self.week} are not available yet")


class DefenseUnavailableError(NotYetAvailableError):
    def __init__(self, season: int, message: str = ""):
        self.season = int(season)
        super().__init__("team_week_stats", message or f"team defense data for season {self.season} is unavailable")


class TransportError(AlumniFantasyError):
    def __init__(self, url: str, message: str = "", status: Optional[int] = None):
        self.url = str(url)
        self.status = status
        super().__init__(message or f"request to {self.url} failed")


class HttpStatusError(TransportError):
    def __init__(self, url: str, status: int, message: str = ""):
        super().__init__(url, message or f"HTTP {int(status)} for {url}", status=int(status))


class SchemaMismatchError(AlumniFantasyError):
    def __init__(self, dataset: str, missing: Iterable[str]):
        self.dataset = str(dataset)
        self.missing: List[str] = sorted(str(item) for item in missing)
        super().__init__(f"{self.dataset} is missing required columns: {', '.join(self.missing)}")


class PersistenceExhaustedError(AlumniFantasyError):
    def __init__(self, key: str, errors: Iterable[str] = ()):
        self.key = str(key)
        self.errors: List[str] = [str(item) for item in errors]
        detail = "; ".join(self.errors) if self.errors else "no backend configured"
        super().__init__(f"unable to persist {self.key}: {detail}")


class InvalidPayloadError(AlumniFantasyError):
    def __init__(self, payload: str, errors: Iterable[str]):
        self.payload = str(payload)
        self.errors: List[str] = [str(item) for item in errors]
        super().__init__(f"{self.payload} payload failed validation: {', '.join(self.errors)}")
