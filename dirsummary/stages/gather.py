from datetime import datetime, timezone
import io
import logging
import os
import zipfile
from pathlib import Path, PurePosixPath

from sqlalchemy.orm import Session

from dirsummary.storage.index_models import Node
from dirsummary.storage.manager import FileSource, NodeKind, StorageManager
from dirsummary.utils.config import Config, get_config

logger = logging.getLogger(__name__)


def should_ignore(name: str, config: Config | None = None) -> bool:
    """Check if a file or directory should be ignored."""
    config = config or get_config()
    return name in config.should_ignore or name.startswith("._")


def is_valid_zip(file_path: Path) -> tuple[bool, str | None]:
    """
    Check if a file is actually a valid ZIP archive.
    Returns (is_valid, error_message).
    """
    try:
        with open(file_path, "rb") as f:
            magic = f.read(4)
    except OSError as e:
        return False, f"Error reading file: {e}"

    if len(magic) == 0:
        return False, "Empty file (0 bytes)"

    # ZIP files start with PK
    if magic[:2] == b"PK":
        return True, None

    if magic.startswith(b"<!DO") or magic.startswith(b"<htm"):
        return False, "HTML file"

    return False, f"Not a ZIP file (starts with {magic.hex()})"


def _escapes_archive(entry_path: PurePosixPath) -> bool:
    """Whether a member name is empty, absolute or climbs out with ``..``."""
    return entry_path.is_absolute() or ".." in entry_path.parts or not entry_path.parts


def _create_node(
    session: Session,
    *,
    snapshot_id: int,
    kind: NodeKind,
    name: str,
    rel_path: PurePosixPath,
    abs_path: Path,
    parent_node_id: int | None,
    file_source: FileSource,
    size: int | None = None,
    mtime: float | None = None,
) -> Node:
    node = Node(
        snapshot_id=snapshot_id,
        parent_node_id=parent_node_id,
        kind=kind.value,
        name=name,
        rel_path=rel_path.as_posix(),
        abs_path=str(abs_path),
        ext=PurePosixPath(name).suffix.lower() or None,
        size=size,
        mtime=mtime,
        depth=len(rel_path.parts),
        file_source=file_source.value,
    )
    session.add(node)
    session.flush()
    return node


def process_zip(
    zip_source,
    base_path: Path,
    parent_rel_path: PurePosixPath,
    parent_node_id: int | None,
    zip_name: str,
    session: Session,
    snapshot_id: int,
    zip_file_source: FileSource = FileSource.ZIP_FILE,
    config: Config | None = None,
) -> None:
    """Record a ZIP archive and its members as nodes.

    The archive is a file node; its members are nested below it, so the
    archive path also acts as a directory in summaries.
    """
    config = config or get_config()
    try:
        with zipfile.ZipFile(zip_source, "r") as zf:
            zip_rel_path = parent_rel_path / zip_name
            zip_node = _create_node(
                session,
                snapshot_id=snapshot_id,
                kind=NodeKind.FILE,
                name=zip_name,
                rel_path=zip_rel_path,
                abs_path=base_path / zip_rel_path,
                parent_node_id=parent_node_id,
                file_source=zip_file_source,
            )
            zip_dir_nodes: dict[PurePosixPath, int] = {}

            for info in zf.infolist():
                entry_path = PurePosixPath(info.filename)
                if _escapes_archive(entry_path):
                    logger.warning(
                        f"Skipping {info.filename} in {zip_name}: path leaves the archive"
                    )
                    continue
                if any(should_ignore(part, config) for part in entry_path.parts):
                    continue

                # Process directory structure
                current_rel_path = zip_rel_path
                current_parent_id = zip_node.node_id
                dir_parts = entry_path.parts if info.is_dir() else entry_path.parts[:-1]
                for part in dir_parts:
                    current_rel_path = current_rel_path / part
                    if current_rel_path not in zip_dir_nodes:
                        zip_dir_nodes[current_rel_path] = _create_node(
                            session,
                            snapshot_id=snapshot_id,
                            kind=NodeKind.DIR,
                            name=part,
                            rel_path=current_rel_path,
                            abs_path=base_path / current_rel_path,
                            parent_node_id=current_parent_id,
                            file_source=FileSource.ZIP_CONTENT,
                        ).node_id
                    current_parent_id = zip_dir_nodes[current_rel_path]

                if info.is_dir():
                    continue

                file_name = entry_path.name
                if file_name.lower().endswith(".zip"):
                    try:
                        nested = io.BytesIO(zf.read(info))
                        process_zip(
                            nested,
                            base_path,
                            current_rel_path,
                            current_parent_id,
                            file_name,
                            session,
                            snapshot_id,
                            FileSource.ZIP_CONTENT,
                            config,
                        )
                        continue
                    except (zipfile.BadZipFile, RuntimeError, NotImplementedError) as e:
                        # encrypted or unsupported members land here; keep the
                        # archive itself as a plain file
                        logger.warning(f"Not expanding nested zip {info.filename}: {e}")

                mtime = datetime(*info.date_time, tzinfo=timezone.utc).timestamp()
                _create_node(
                    session,
                    snapshot_id=snapshot_id,
                    kind=NodeKind.FILE,
                    name=file_name,
                    rel_path=current_rel_path / file_name,
                    abs_path=base_path / current_rel_path / file_name,
                    parent_node_id=current_parent_id,
                    file_source=FileSource.ZIP_CONTENT,
                    size=info.file_size,
                    mtime=mtime,
                )

    except (NotImplementedError, zipfile.BadZipFile) as e:
        logger.error(f"Error processing zip {zip_name}: {e}")
        raise


def ingest_filesystem(
    storage_manager: StorageManager,
    base_path: Path,
    label: str | None = None,
    config: Config | None = None,
) -> int:
    """Capture ``base_path`` as a new immutable snapshot.

    Args:
        storage_manager: Storage to write the snapshot into
        base_path: Root directory to walk
        label: Optional unique name usable as a summary reference
        config: Ignore rules (defaults to the packaged config)

    Returns:
        The new snapshot_id
    """
    config = config or get_config()
    base_path = Path(base_path)
    file_count = 0

    with storage_manager.ingestion_job(root_path=base_path, label=label) as job:
        snapshot_id = job.snapshot_id
        with storage_manager.get_index_session() as index_session:
            dir_nodes: dict[PurePosixPath, int] = {}

            for root, dirs, files in os.walk(base_path):
                # Filter out ignored files and directories
                dirs[:] = sorted(d for d in dirs if not should_ignore(d, config))
                files = sorted(f for f in files if not should_ignore(f, config))

                root_path = Path(root)
                root_rel = PurePosixPath(root_path.relative_to(base_path).as_posix())
                if root_rel == PurePosixPath("."):
                    root_rel = PurePosixPath()
                parent_node_id = dir_nodes.get(root_rel)

                for d in dirs:
                    folder_path = root_path / d
                    rel_path = root_rel / d
                    stat = folder_path.stat()
                    node = _create_node(
                        index_session,
                        snapshot_id=snapshot_id,
                        kind=NodeKind.DIR,
                        name=d,
                        rel_path=rel_path,
                        abs_path=folder_path,
                        parent_node_id=parent_node_id,
                        file_source=FileSource.FILESYSTEM,
                        mtime=stat.st_mtime,
                    )
                    dir_nodes[rel_path] = node.node_id

                for f in files:
                    file_path = root_path / f
                    file_count += 1

                    if config.expand_zip and f.lower().endswith(".zip"):
                        # Validate that it's actually a ZIP file before processing
                        is_valid, error_msg = is_valid_zip(file_path)
                        if is_valid:
                            # BadZipFile surfaces when opening, before any node is added
                            try:
                                process_zip(
                                    file_path,
                                    base_path,
                                    root_rel,
                                    parent_node_id,
                                    f,
                                    index_session,
                                    snapshot_id,
                                    FileSource.ZIP_FILE,
                                    config,
                                )
                                continue
                            except zipfile.BadZipFile as e:
                                error_msg = str(e)
                        logger.warning(f"Not expanding {file_path}: {error_msg}")

                    stat = file_path.stat()
                    _create_node(
                        index_session,
                        snapshot_id=snapshot_id,
                        kind=NodeKind.FILE,
                        name=f,
                        rel_path=root_rel / f,
                        abs_path=file_path,
                        parent_node_id=parent_node_id,
                        file_source=FileSource.FILESYSTEM,
                        size=stat.st_size,
                        mtime=stat.st_mtime,
                    )

            index_session.commit()

    logger.info(f"Captured snapshot {snapshot_id} with {file_count} files from {base_path}")
    return snapshot_id
