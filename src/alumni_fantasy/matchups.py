from typing import Iterable, List, Optional

from .alumni_types import CollegiateGame, MatchupResult, SchoolAggregate


def _winner(home: str, away: str, home_total: float, away_total: float) -> Optional[str]:
    if home_total > away_total:
        return home
    if away_total > home_total:
        return away
    return None


def score_matchups(aggregates: Iterable[SchoolAggregate], games: Iterable[CollegiateGame]) -> List[MatchupResult]:
    """Pit each collegiate game's two schools against each other by alumni totals.

    Games with an unresolved side are skipped; a school without alumni
    scores zero. A tie has no winner.
    """
    totals = {aggregate.school: aggregate.total_points for aggregate in aggregates}
    results: List[MatchupResult] = []
    for game in games:
        if not game.home or not game.away:
            continue
        home_total = round(float(totals.get(game.home, 0.0)), 2)
        away_total = round(float(totals.get(game.away, 0.0)), 2)
        results.append(
            MatchupResult(
                home=game.home,
                away=game.away,
                week=int(game.week),
                kickoff=game.kickoff,
                home_total=home_total,
                away_total=away_total,
                winner=_winner(game.home, game.away, home_total, away_total),
            )
        )
    return results
