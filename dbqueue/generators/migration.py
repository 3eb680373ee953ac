# dbqueue/generators/migration.py
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined

from dbqueue.common.message import DEFAULT_WEIGHT
from dbqueue.common.states import Status
from dbqueue.storage.sql_storage import DEFAULT_TABLE

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "queue_migration.py.j2"
REVISION_FORMAT = "%Y%m%d%H%M%S"


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("dbqueue.generators", "templates"),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


@dataclass
class MigrationGenerator:
    """Renders an Alembic revision that creates a queue table."""

    table: str = DEFAULT_TABLE
    db_group: str = "default"
    namespace: str = "migrations"
    down_revision: Optional[str] = None

    def render(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(UTC)
        template = _environment().get_template(TEMPLATE_NAME)
        return template.render(
            table=self.table,
            db_group=self.db_group,
            revision=now.strftime(REVISION_FORMAT),
            down_revision=self.down_revision,
            create_date=now.strftime("%Y-%m-%d %H:%M:%S"),
            waiting=int(Status.WAITING),
            default_weight=DEFAULT_WEIGHT,
        )

    def filename(self, now: datetime) -> str:
        return f"{now.strftime(REVISION_FORMAT)}_create_{self.table}_table.py"

    def target_dir(self, root: Path) -> Path:
        return root.joinpath(*self.namespace.split(".")) / "versions"

    def write(self, root: Path = Path("."), now: Optional[datetime] = None) -> Path:
        now = now or datetime.now(UTC)
        directory = self.target_dir(root)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename(now)
        if path.exists():
            raise FileExistsError(f"Migration already exists: {path}")
        path.write_text(self.render(now), encoding="utf-8")
        logger.info("Created migration %s", path)
        return path
