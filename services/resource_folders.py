"""
Resource Folders - Folder tree for the resources library.

Root folders 'Leads', 'Finanzas' and 'Documentación Legal' always exist;
every school gets its own folder under 'Leads'.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict
from sqlalchemy.orm import Session

from database.models import ResourceFolder, Resource, School
from validators import require_valid

logger = logging.getLogger(__name__)

DEFAULT_ROOT_FOLDERS = ['Leads', 'Finanzas', 'Documentación Legal']
LEADS_FOLDER = 'Leads'


def build_folder_tree(folders: List[Dict]) -> List[Dict]:
    """Nest a flat list of folder dicts under their parents ('children' key)."""
    by_parent = {}
    for folder in folders:
        by_parent.setdefault(folder.get('parent_id'), []).append(folder)

    def build(parent_id):
        return [dict(folder, children=build(folder['id'])) for folder in by_parent.get(parent_id, [])]

    return build(None)


class ResourceFolderRepository:
    """Repository for resource folders."""

    def __init__(self, session: Session):
        self.session = session

    def list_folders(self) -> List[Dict]:
        """All folders, flat, ordered by name."""
        folders = self.session.query(ResourceFolder).order_by(ResourceFolder.name.asc()).all()
        return [f.to_dict() for f in folders]

    def get_tree(self) -> List[Dict]:
        return build_folder_tree(self.list_folders())

    def get_folder(self, folder_id: str) -> Optional[Dict]:
        folder = self.session.query(ResourceFolder).filter(ResourceFolder.id == folder_id).first()
        return folder.to_dict() if folder else None

    def _subtree_ids(self, root_ids: List[str]) -> List[str]:
        rows = self.session.query(ResourceFolder.id, ResourceFolder.parent_id).all()
        by_parent = {}
        for folder_id, parent_id in rows:
            by_parent.setdefault(parent_id, []).append(folder_id)

        result = []
        seen = set()
        queue = list(root_ids)
        while queue:
            folder_id = queue.pop(0)
            if folder_id in seen:
                continue
            seen.add(folder_id)
            result.append(folder_id)
            queue.extend(by_parent.get(folder_id, []))
        return result

    def get_folder_ids_for_client(self, client_id: str) -> List[str]:
        """IDs of the client's folders and every folder below them."""
        roots = [
            folder_id for (folder_id,) in self.session.query(ResourceFolder.id).filter(
                ResourceFolder.school_id == client_id
            ).all()
        ]
        return self._subtree_ids(roots)

    def create_folder(self, name: str, parent_id: str = None, school_id: str = None) -> Dict:
        name = (name or '').strip()
        if not name:
            require_valid((False, "El nombre no puede estar vacío"), 'name')

        folder = ResourceFolder(name=name, parent_id=parent_id or None, school_id=school_id or None)
        self.session.add(folder)
        self.session.flush()

        logger.info(f"Created resource folder: {name}")
        return folder.to_dict()

    def rename_folder(self, folder_id: str, name: str) -> Optional[Dict]:
        name = (name or '').strip()
        if not name:
            require_valid((False, "El nombre no puede estar vacío"), 'name')

        folder = self.session.query(ResourceFolder).filter(ResourceFolder.id == folder_id).first()
        if not folder:
            return None
        folder.name = name
        folder.updated_at = datetime.utcnow()
        self.session.flush()
        return folder.to_dict()

    def delete_folder(self, folder_id: str) -> bool:
        """Delete a folder and its subfolders. Resources inside are kept, unfiled."""
        folder = self.session.query(ResourceFolder).filter(ResourceFolder.id == folder_id).first()
        if not folder:
            return False

        subtree = self._subtree_ids([folder_id])
        self.session.query(Resource).filter(
            Resource.folder_id.in_(subtree)
        ).update({Resource.folder_id: None}, synchronize_session='fetch')
        self.session.delete(folder)
        self.session.flush()

        logger.info(f"Deleted resource folder {folder_id} ({len(subtree)} folder(s))")
        return True

    def ensure_default_folders(self) -> int:
        """Create missing root folders. Returns how many were created."""
        existing = {
            name for (name,) in self.session.query(ResourceFolder.name).filter(
                ResourceFolder.parent_id.is_(None)
            ).all()
        }
        created = 0
        for name in DEFAULT_ROOT_FOLDERS:
            if name not in existing:
                self.session.add(ResourceFolder(name=name))
                existing.add(name)
                created += 1
        self.session.flush()
        return created

    def ensure_school_folders_exist(self) -> int:
        """Create a folder under 'Leads' for every school that has none."""
        leads = self.session.query(ResourceFolder).filter(
            ResourceFolder.name == LEADS_FOLDER,
            ResourceFolder.parent_id.is_(None)
        ).first()
        if not leads:
            return 0

        with_folder = {
            school_id for (school_id,) in self.session.query(ResourceFolder.school_id).filter(
                ResourceFolder.school_id.isnot(None)
            ).all()
        }
        created = 0
        for school_id, school_name in self.session.query(School.id, School.name).all():
            if school_id in with_folder:
                continue
            self.session.add(ResourceFolder(parent_id=leads.id, name=school_name, school_id=school_id))
            with_folder.add(school_id)
            created += 1
        self.session.flush()

        if created:
            logger.info(f"Created {created} school folder(s) under {LEADS_FOLDER}")
        return created
