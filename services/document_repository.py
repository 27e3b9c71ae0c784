"""
Document Repository - Company document library (links grouped by category).
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_, func

from database.models import DocumentCategory, DocumentRecord
from validators import validate_required_fields, validate_url, require_valid

logger = logging.getLogger(__name__)

DOCUMENT_FIELDS = ['category_id', 'title', 'url', 'description', 'owner', 'document_type']


class DocumentRepository:
    """Repository for document categories and document records."""

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def list_categories(self) -> List[Dict]:
        categories = self.session.query(DocumentCategory).order_by(DocumentCategory.name.asc()).all()
        return [c.to_dict() for c in categories]

    def create_category(self, name: str, description: str = '') -> Dict:
        name = (name or '').strip()
        if not name:
            require_valid((False, "Category name is required"), 'name')

        category = DocumentCategory(name=name, description=description or '')
        self.session.add(category)
        self.session.flush()

        logger.info(f"Created document category: {name}")
        return category.to_dict()

    def update_category(self, category_id: str, data: Dict) -> Optional[Dict]:
        category = self.session.query(DocumentCategory).filter(DocumentCategory.id == category_id).first()
        if not category:
            return None

        if 'name' in data:
            name = (data['name'] or '').strip()
            if not name:
                require_valid((False, "Category name is required"), 'name')
            category.name = name
        if 'description' in data:
            category.description = data['description'] or ''
        self.session.flush()
        return category.to_dict()

    def delete_category(self, category_id: str) -> bool:
        """Delete a category. Its documents are kept without a category."""
        category = self.session.query(DocumentCategory).filter(DocumentCategory.id == category_id).first()
        if not category:
            return False

        self.session.query(DocumentRecord).filter(
            DocumentRecord.category_id == category_id
        ).update({DocumentRecord.category_id: None}, synchronize_session='fetch')
        self.session.delete(category)
        self.session.flush()
        return True

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def list_documents(self, category_id: str = None, search: str = None) -> List[Dict]:
        """
        Documents newest first, with their category name.

        Args:
            category_id: Only documents in this category
            search: Case-insensitive match on title, description, type or owner
        """
        query = self.session.query(DocumentRecord).options(joinedload(DocumentRecord.category))
        if category_id:
            query = query.filter(DocumentRecord.category_id == category_id)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(DocumentRecord.title).like(term),
                func.lower(DocumentRecord.description).like(term),
                func.lower(DocumentRecord.document_type).like(term),
                func.lower(DocumentRecord.owner).like(term)
            ))
        documents = query.order_by(DocumentRecord.created_at.desc()).all()
        return [d.to_dict() for d in documents]

    def get_document(self, document_id: str) -> Optional[Dict]:
        document = self.session.query(DocumentRecord).filter(DocumentRecord.id == document_id).first()
        return document.to_dict() if document else None

    def create_document(self, data: Dict) -> Dict:
        require_valid(validate_required_fields(data, ['title', 'url']))
        require_valid(validate_url(data['url']), 'url')

        document = DocumentRecord(
            category_id=data.get('category_id') or None,
            title=data['title'].strip(),
            url=data['url'].strip(),
            description=data.get('description') or '',
            owner=data.get('owner') or '',
            document_type=data.get('document_type') or ''
        )
        self.session.add(document)
        self.session.flush()

        logger.info(f"Created document: {document.id}")
        return document.to_dict()

    def update_document(self, document_id: str, data: Dict) -> Optional[Dict]:
        if 'url' in data:
            require_valid(validate_url(data['url']), 'url')

        document = self.session.query(DocumentRecord).filter(DocumentRecord.id == document_id).first()
        if not document:
            return None

        for key in DOCUMENT_FIELDS:
            if key in data:
                value = data[key]
                if key == 'category_id':
                    value = value or None
                elif value is None:
                    value = ''
                setattr(document, key, value)
        document.updated_at = datetime.utcnow()
        self.session.flush()
        return document.to_dict()

    def delete_document(self, document_id: str) -> bool:
        document = self.session.query(DocumentRecord).filter(DocumentRecord.id == document_id).first()
        if not document:
            return False
        self.session.delete(document)
        self.session.flush()
        return True
