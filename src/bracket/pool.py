"""
Validation and shaping of the raw candidate list before a bracket is built.
"""
import logging
from typing import Dict, Iterable, List, Union

from .errors import InvalidInputError
from .models import BYE_TITLE, Item

logger = logging.getLogger(__name__)


def _coerce(record: Union[Item, Dict]) -> Item:
    if isinstance(record, Item):
        return record
    if not isinstance(record, dict):
        raise InvalidInputError(f'Item record must be a mapping, got {type(record).__name__}')
    item_id = record.get('id')
    if item_id is None or str(item_id).strip() == '':
        raise InvalidInputError('Item record is missing an id')
    return Item(
        id=str(item_id).strip(),
        title=record.get('title'),
        image_ref=record.get('image_ref') or record.get('image_url'),
        description=record.get('description'),
    )


def normalize_items(records: Iterable[Union[Item, Dict]]) -> List[Item]:
    """
    Turn raw item records into a clean, ordered list of Items.

    Titles are stripped. Duplicates are detected by id only: two records
    sharing a title but not an id are distinct candidates. The first record
    for an id wins and input order is kept.

    Raises InvalidInputError for records without an id or title, and for
    records titled like the bye sentinel.
    """
    items = []
    seen_ids = set()
    for record in records:
        item = _coerce(record)
        title = item.title.strip() if isinstance(item.title, str) else ''
        if not title:
            raise InvalidInputError(f'Item {item.id} has an empty title')
        if title.upper() == BYE_TITLE:
            raise InvalidInputError(f'Item {item.id} uses the reserved title "{BYE_TITLE}"')
        if item.id in seen_ids:
            logger.warning('Dropping duplicate item id %s (%s)', item.id, title)
            continue
        seen_ids.add(item.id)
        items.append(Item(item.id, title, image_ref=item.image_ref, description=item.description))
    return items
