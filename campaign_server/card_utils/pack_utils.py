import json
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Union

from campaign_server.card_utils.card import PlayingCard


def backup_filename(campaign_name: str, when: Optional[datetime] = None) -> str:
    """Name of a catalog backup, e.g. "Curse of Strahd 2024-05-01 18:30.json"."""
    when = when or datetime.now()
    return f"{campaign_name} {when.strftime('%Y-%m-%d %H:%M')}.json"


def cards_from_json(data: Any) -> List[PlayingCard]:
    """
    Parse a card backup. Accepts either a bare list of cards or a full
    campaign snapshot carrying a "cards" list.
    """
    if isinstance(data, dict):
        data = data.get('cards', [])
    if not isinstance(data, list):
        raise ValueError('Card backup must be a list of cards or a campaign snapshot.')
    return [PlayingCard.model_validate(item) for item in data]


def cards_from_path(path: Union[str, Path]) -> List[PlayingCard]:
    """Load a card backup written by `write_backup` (or by the export endpoint)."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return cards_from_json(data)


def write_backup(path: Union[str, Path], payload: Any) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding='utf-8')
    return path
