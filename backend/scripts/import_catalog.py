"""CLI script to import platforms and games from a JSON file.
Usage: python scripts/import_catalog.py catalog.json

The file holds `{"platforms": [...], "games": [...]}`; each item has the
same fields as the corresponding POST body. Items whose slug already
exists are skipped, so the import can be re-run safely.
"""
import sys
import json
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `game_catalog` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from game_catalog import schemas, services
from game_catalog.database import get_db


def import_catalog(db, data: dict) -> dict:
    """Create the platforms then the games found in `data`.

    Returns a summary with created/skipped counts per resource and the
    errors encountered, indexed by position in the input lists.
    """
    summary = {
        'platforms': {'created': 0, 'skipped': 0, 'errors': []},
        'games': {'created': 0, 'skipped': 0, 'errors': []},
    }
    steps = (
        ('platforms', schemas.PlatformIn, services.PlatformService(db)),
        ('games', schemas.GameIn, services.GameService(db)),
    )
    for key, schema, svc in steps:
        for idx, item in enumerate(data.get(key) or []):
            try:
                svc.create(schema.model_validate(item))
            except services.ConflictError:
                summary[key]['skipped'] += 1
                continue
            except ValueError as e:
                summary[key]['errors'].append({'index': idx, 'error': str(e)})
                continue
            summary[key]['created'] += 1
    return summary


def main(path: pathlib.Path):
    """Load `path` and import it into the configured database."""
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        print(f'Cannot read {path}: {e}')
        return 1
    if not isinstance(data, dict):
        print(f'{path} must contain a JSON object')
        return 1
    summary = import_catalog(get_db(), data)
    for key, result in summary.items():
        print(f"{key}: created {result['created']}, skipped {result['skipped']}, errors {len(result['errors'])}")
        for err in result['errors']:
            print(f"  #{err['index']}: {err['error']}")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('path', type=pathlib.Path, help='JSON file with platforms and games')
    args = parser.parse_args()
    sys.exit(main(args.path))
