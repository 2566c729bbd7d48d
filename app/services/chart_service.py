"""Aggregations of the merged library for the dashboard chart and stats."""
from typing import Dict, List

from steamlog import minutes_to_hours

from .backlog_service import UNTRACKED_STATUS

STATUS_COLORS = {
    'Completed': 'rgba(75, 192, 192, 0.6)',
    'Playing': 'rgba(255, 159, 64, 0.6)',
    'Planning': 'rgba(54, 162, 235, 0.6)',
    'Dropped': 'rgba(255, 99, 132, 0.6)',
    UNTRACKED_STATUS: 'rgba(201, 203, 207, 0.6)',
}
DEFAULT_COLOR = 'rgba(201, 203, 207, 0.6)'

GAME_PALETTE = (
    'rgba(255, 99, 132, 0.6)',
    'rgba(54, 162, 235, 0.6)',
    'rgba(255, 206, 86, 0.6)',
    'rgba(75, 192, 192, 0.6)',
    'rgba(153, 102, 255, 0.6)',
    'rgba(255, 159, 64, 0.6)',
    'rgba(201, 203, 207, 0.6)',
)

TOP_GAMES_LIMIT = 15


def _minutes(game: Dict) -> int:
    return game.get('playtimeMinutes') or 0


def _dataset(label: str, values: List[int], colors: List[str]) -> Dict:
    return {
        'label': label,
        'data': values,
        'backgroundColor': colors,
        'hoverOffset': 4,
    }


def playtime_by_status(games: List[Dict]) -> Dict:
    """Total playtime (hours) per backlog status in Chart.js ``data`` form.

    Untracked games count as ``Not Started``.  Labels keep first-seen order.
    """
    totals: Dict[str, int] = {}
    for game in games:
        status = game.get('status') or UNTRACKED_STATUS
        totals[status] = totals.get(status, 0) + _minutes(game)

    labels = list(totals)
    return {
        'labels': labels,
        'datasets': [_dataset(
            'Total Playtime (hours)',
            [round(minutes / 60) for minutes in totals.values()],
            [STATUS_COLORS.get(label, DEFAULT_COLOR) for label in labels],
        )],
    }


def top_games_by_playtime(games: List[Dict], limit: int = TOP_GAMES_LIMIT) -> Dict:
    """The *limit* most-played games (hours) in Chart.js ``data`` form."""
    # sorted() is stable, so ties keep library order
    top = sorted(games, key=_minutes, reverse=True)[:limit]
    return {
        'labels': [g.get('name', '') for g in top],
        'datasets': [_dataset(
            f'Top {limit} Games by Playtime',
            [round(_minutes(g) / 60) for g in top],
            [GAME_PALETTE[i % len(GAME_PALETTE)] for i in range(len(top))],
        )],
    }


def library_summary(games: List[Dict]) -> Dict:
    """Headline numbers for the stats panel."""
    total_games = len(games)
    unplayed = sum(1 for g in games if _minutes(g) == 0)
    total_minutes = sum(_minutes(g) for g in games)

    status_counts: Dict[str, int] = {}
    for game in games:
        status = game.get('status') or UNTRACKED_STATUS
        status_counts[status] = status_counts.get(status, 0) + 1

    top_games = [
        {'name': g.get('name', ''), 'playtimeHours': minutes_to_hours(_minutes(g))}
        for g in sorted(games, key=_minutes, reverse=True)[:10]
    ]

    return {
        'totalGames': total_games,
        'playedGames': total_games - unplayed,
        'unplayedGames': unplayed,
        'unplayedPercentage': round(unplayed / total_games * 100, 1) if total_games else 0,
        'totalPlaytimeHours': minutes_to_hours(total_minutes),
        'averagePlaytimeHours': round(total_minutes / 60 / total_games, 1) if total_games else 0,
        'statusCounts': status_counts,
        'topGames': top_games,
    }
