"""
Resource Repository - Central library of links to external assets.

A resource is a URL (Drive, Canva, Figma, Notion, Loom...) that can be filed
in a folder, linked to CRM entities and found by aliases.
"""

import re
import logging
from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, func, select

from database.models import Resource, ResourceLink, ResourceAlias
from validators import validate_required_fields, validate_choice, validate_url, require_valid

logger = logging.getLogger(__name__)

RESOURCE_SOURCES = ['google_drive', 'canva', 'figma', 'notion', 'loom', 'other']
RESOURCE_TYPES = ['logo', 'contract', 'deck', 'template', 'report', 'image',
                  'video', 'spreadsheet', 'doc', 'other']
RESOURCE_STATUSES = ['draft', 'final', 'archived']
RESOURCE_ENTITY_TYPES = ['client', 'deal', 'project', 'task', 'internal']

RESOURCE_FIELDS = ['title', 'url', 'source', 'type', 'status', 'version',
                   'description', 'owner_user_id', 'folder_id']

# Sentinel for "folder filter not given" (None means unfiled)
ANY_FOLDER = object()


def normalize_title(title: str) -> str:
    return re.sub(r'\s+', ' ', (title or '').strip().lower())


def _with_links(resource: Resource, links: List[ResourceLink] = None) -> Dict[str, Any]:
    links = resource.links if links is None else links
    data = resource.to_dict()
    data['links'] = [link.to_dict() for link in links]
    data['aliases'] = [alias.alias for alias in resource.aliases]
    data['linked_to'] = ', '.join(
        f"{link.entity_type} ({link.entity_id})" if link.entity_id else link.entity_type
        for link in links
    ) or None
    data['is_primary_for_entity'] = any(link.is_primary for link in links)
    return data


class ResourceRepository:
    """Repository for resources, their entity links and aliases."""

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return self.session.query(Resource).options(
            selectinload(Resource.links),
            selectinload(Resource.aliases)
        ).populate_existing()

    def _get(self, resource_id: str) -> Optional[Resource]:
        return self._query().filter(Resource.id == resource_id).first()

    def _validate(self, data: Dict, partial: bool = False):
        if not partial:
            require_valid(validate_required_fields(data, ['title', 'url']))
        if 'title' in data and not str(data['title'] or '').strip():
            require_valid((False, "Title cannot be empty"), 'title')
        if 'url' in data:
            require_valid(validate_url(str(data['url'] or '').strip()), 'url')
        if 'source' in data:
            require_valid(validate_choice(data['source'], RESOURCE_SOURCES), 'source')
        if 'type' in data:
            require_valid(validate_choice(data['type'], RESOURCE_TYPES), 'type')
        if 'status' in data:
            require_valid(validate_choice(data['status'], RESOURCE_STATUSES), 'status')

    # =========================================================================
    # LISTING
    # =========================================================================

    def list_resources(self, resource_type: str = None, status: str = None, source: str = None,
                       entity_type: str = None, entity_id: str = None, only_primary: bool = False,
                       search: str = None, folder_id=ANY_FOLDER) -> List[Dict]:
        """
        Resources, most recently updated first.

        Args:
            resource_type: Filter by type
            status: Filter by status
            source: Filter by source
            entity_type: Only resources linked to this entity type
            entity_id: Narrow entity_type to one entity ('internal' links have none)
            only_primary: With entity_type, keep primary links only
            search: Case-insensitive match on title, description or summary
            folder_id: Folder ID, or None for unfiled resources

        Returns:
            List of resource dicts with their links
        """
        query = self._query()

        if entity_type is not None:
            links = select(ResourceLink.resource_id).where(
                ResourceLink.entity_type == entity_type
            )
            if entity_id:
                links = links.where(ResourceLink.entity_id == entity_id)
            elif entity_type == 'internal':
                links = links.where(ResourceLink.entity_id.is_(None))
            if only_primary:
                links = links.where(ResourceLink.is_primary.is_(True))
            query = query.filter(Resource.id.in_(links))

        if resource_type:
            query = query.filter(Resource.type == resource_type)
        if status:
            query = query.filter(Resource.status == status)
        if source:
            query = query.filter(Resource.source == source)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(Resource.title).like(term),
                func.lower(Resource.description).like(term),
                func.lower(Resource.ai_summary).like(term)
            ))
        if folder_id is not ANY_FOLDER:
            if folder_id is None:
                query = query.filter(Resource.folder_id.is_(None))
            else:
                query = query.filter(Resource.folder_id == folder_id)

        resources = query.order_by(Resource.updated_at.desc()).all()
        return [_with_links(r) for r in resources]

    def get_resource(self, resource_id: str) -> Optional[Dict]:
        resource = self._get(resource_id)
        return _with_links(resource) if resource else None

    def get_resources_by_entity(self, entity_type: str, entity_id: str) -> Dict[str, List[Dict]]:
        """Resources linked to one entity, split into primary and others."""
        links = self.session.query(ResourceLink).options(
            selectinload(ResourceLink.resource).selectinload(Resource.aliases)
        ).filter(
            ResourceLink.entity_type == entity_type,
            ResourceLink.entity_id == entity_id
        ).all()

        result = {'primary': [], 'others': []}
        for link in links:
            if not link.resource:
                continue
            item = _with_links(link.resource, [link])
            result['primary' if link.is_primary else 'others'].append(item)
        return result

    def get_resources_for_client(self, client_id: str) -> List[Dict]:
        """Resources linked to the client plus those filed in the client's folders."""
        from services.resource_folders import ResourceFolderRepository

        linked = self.get_resources_by_entity('client', client_id)
        by_id = {}
        for item in linked['primary'] + linked['others']:
            by_id[item['id']] = item

        folder_ids = ResourceFolderRepository(self.session).get_folder_ids_for_client(client_id)
        if folder_ids:
            filed = self._query().filter(
                Resource.folder_id.in_(folder_ids)
            ).order_by(Resource.updated_at.desc()).all()
            for resource in filed:
                if resource.id not in by_id:
                    by_id[resource.id] = _with_links(resource, [])

        return list(by_id.values())

    def list_for_picker(self) -> List[Dict]:
        """Non-archived resources by title, for the 'link existing' selector."""
        resources = self.session.query(Resource).filter(
            Resource.status != 'archived'
        ).order_by(Resource.title.asc()).all()
        return [r.to_dict() for r in resources]

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_resource(self, data: Dict) -> Dict:
        """
        Create a resource, optionally linking it and adding aliases.

        data may carry link_to ({'entity_type', 'entity_id'}), is_primary
        and aliases (list of strings).
        """
        self._validate(data)

        title = data['title'].strip()
        resource = Resource(
            title=title,
            normalized_title=normalize_title(title),
            url=data['url'].strip(),
            type=data.get('type', 'other'),
            source=data.get('source', 'other'),
            status=data.get('status', 'draft'),
            version=data.get('version'),
            description=data.get('description'),
            owner_user_id=data.get('owner_user_id'),
            folder_id=data.get('folder_id') or None
        )
        self.session.add(resource)
        self.session.flush()

        link_to = data.get('link_to')
        if link_to:
            self.link_resource(resource.id, link_to.get('entity_type'),
                               link_to.get('entity_id'), bool(data.get('is_primary', False)))
        for alias in data.get('aliases') or []:
            if str(alias).strip():
                self.add_alias(resource.id, alias)

        self.session.refresh(resource)
        logger.info(f"Created resource: {resource.id}")
        return _with_links(resource)

    def update_resource(self, resource_id: str, data: Dict) -> Optional[Dict]:
        """Update only the fields present in data."""
        self._validate(data, partial=True)

        resource = self._get(resource_id)
        if not resource:
            return None

        for key in RESOURCE_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key in ('title', 'url'):
                value = value.strip()
            setattr(resource, key, value)
        if 'title' in data:
            resource.normalized_title = normalize_title(resource.title)

        resource.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Updated resource: {resource_id}")
        return _with_links(resource)

    def archive_resource(self, resource_id: str) -> bool:
        return self.update_resource(resource_id, {'status': 'archived'}) is not None

    def delete_resource(self, resource_id: str) -> bool:
        resource = self._get(resource_id)
        if not resource:
            return False
        self.session.delete(resource)
        self.session.flush()
        logger.info(f"Deleted resource: {resource_id}")
        return True

    # =========================================================================
    # LINKS
    # =========================================================================

    def link_resource(self, resource_id: str, entity_type: str, entity_id: str = None,
                      is_primary: bool = False) -> Optional[Dict]:
        """Link a resource to an entity. Linking twice returns the existing link."""
        require_valid(validate_choice(entity_type, RESOURCE_ENTITY_TYPES), 'entity_type')

        resource = self.session.query(Resource).filter(Resource.id == resource_id).first()
        if not resource:
            return None

        entity_id = None if entity_type == 'internal' else (entity_id or None)
        existing = self.session.query(ResourceLink).filter(
            ResourceLink.resource_id == resource_id,
            ResourceLink.entity_type == entity_type,
            ResourceLink.entity_id.is_(None) if entity_id is None else ResourceLink.entity_id == entity_id
        ).first()
        if existing:
            if is_primary and not existing.is_primary:
                return self.set_primary_link(existing.id)
            return existing.to_dict()

        link = ResourceLink(resource_id=resource_id, entity_type=entity_type,
                            entity_id=entity_id, is_primary=False)
        self.session.add(link)
        self.session.flush()

        if is_primary:
            return self.set_primary_link(link.id)
        return link.to_dict()

    def unlink_resource(self, link_id: str) -> bool:
        link = self.session.query(ResourceLink).filter(ResourceLink.id == link_id).first()
        if not link:
            return False
        self.session.delete(link)
        self.session.flush()
        return True

    def set_primary_link(self, link_id: str) -> Optional[Dict]:
        """Make a link the primary one for its entity, demoting any other."""
        link = self.session.query(ResourceLink).filter(ResourceLink.id == link_id).first()
        if not link:
            return None

        others = self.session.query(ResourceLink).filter(
            ResourceLink.entity_type == link.entity_type,
            ResourceLink.id != link.id,
            ResourceLink.is_primary.is_(True)
        )
        if link.entity_id is None:
            others = others.filter(ResourceLink.entity_id.is_(None))
        else:
            others = others.filter(ResourceLink.entity_id == link.entity_id)
        for other in others.all():
            other.is_primary = False

        link.is_primary = True
        self.session.flush()
        return link.to_dict()

    # =========================================================================
    # ALIASES
    # =========================================================================

    def add_alias(self, resource_id: str, alias: str) -> Optional[Dict]:
        alias = (alias or '').strip()
        if not alias:
            return None
        resource = self.session.query(Resource).filter(Resource.id == resource_id).first()
        if not resource:
            return None

        row = ResourceAlias(resource_id=resource_id, alias=alias)
        self.session.add(row)
        self.session.flush()
        return row.to_dict()

    def remove_alias(self, alias_id: str) -> bool:
        row = self.session.query(ResourceAlias).filter(ResourceAlias.id == alias_id).first()
        if not row:
            return False
        self.session.delete(row)
        self.session.flush()
        return True
