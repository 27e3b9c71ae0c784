"""
Tests for the document library, resources and resource folders
"""
import pytest

from services.document_repository import DocumentRepository
from services.resource_repository import ResourceRepository, normalize_title, ANY_FOLDER
from services.resource_folders import (
    DEFAULT_ROOT_FOLDERS,
    ResourceFolderRepository,
    build_folder_tree,
)
from validators import ValidationError


@pytest.fixture
def documents(db_session):
    return DocumentRepository(db_session)


@pytest.fixture
def resources(db_session):
    return ResourceRepository(db_session)


@pytest.fixture
def folders(db_session):
    return ResourceFolderRepository(db_session)


def resource_data(**overrides):
    data = {'title': 'Logo Finomik', 'url': 'https://drive.google.com/file/abc', 'type': 'logo'}
    data.update(overrides)
    return data


@pytest.mark.unit
class TestDocuments:
    """Tests for document categories and records"""

    def test_create_document_with_category(self, documents):
        """Test that documents carry their category name"""
        category = documents.create_category('Legal', 'Contratos y acuerdos')
        document = documents.create_document({
            'title': 'Contrato marco', 'url': 'https://docs.example.com/contrato',
            'category_id': category['id'], 'owner': 'Ana'
        })
        assert document['category_name'] == 'Legal'
        assert document['owner'] == 'Ana'

    def test_document_requires_valid_url(self, documents):
        """Test that title and a valid URL are required"""
        with pytest.raises(ValidationError):
            documents.create_document({'title': 'Sin url'})
        with pytest.raises(ValidationError) as exc_info:
            documents.create_document({'title': 'X', 'url': 'ftp://example.com/file'})
        assert exc_info.value.field == 'url'

    def test_blank_category_name_rejected(self, documents):
        """Test that category names cannot be blank"""
        with pytest.raises(ValidationError):
            documents.create_category('   ')

    def test_delete_category_keeps_documents(self, documents):
        """Test that deleting a category leaves its documents uncategorised"""
        category = documents.create_category('Temporal')
        document = documents.create_document({
            'title': 'Acta', 'url': 'https://docs.example.com/acta', 'category_id': category['id']
        })

        assert documents.delete_category(category['id']) is True
        kept = documents.get_document(document['id'])
        assert kept is not None
        assert kept['category_id'] is None

    def test_search_and_filter(self, documents):
        """Test searching across title, type and owner"""
        category = documents.create_category('Ventas')
        documents.create_document({'title': 'Dossier comercial', 'url': 'https://example.com/a',
                                   'category_id': category['id'], 'document_type': 'pdf'})
        documents.create_document({'title': 'Manual interno', 'url': 'https://example.com/b',
                                   'owner': 'Luis'})

        assert [d['title'] for d in documents.list_documents(search='luis')] == ['Manual interno']
        assert [d['title'] for d in documents.list_documents(search='PDF')] == ['Dossier comercial']
        assert len(documents.list_documents(category_id=category['id'])) == 1

    def test_update_document(self, documents):
        """Test partial updates and clearing the category"""
        document = documents.create_document({'title': 'A', 'url': 'https://example.com/a'})
        updated = documents.update_document(document['id'], {'title': 'B', 'category_id': ''})
        assert updated['title'] == 'B'
        assert updated['category_id'] is None
        assert documents.update_document('missing', {'title': 'X'}) is None


@pytest.mark.unit
class TestResources:
    """Tests for resources, links and aliases"""

    def test_normalize_title(self):
        """Test that titles are lowercased and whitespace is collapsed"""
        assert normalize_title('  Logo   Finomik ') == 'logo finomik'

    def test_create_with_link_and_aliases(self, resources):
        """Test creating a resource already linked and aliased"""
        resource = resources.create_resource(resource_data(
            link_to={'entity_type': 'client', 'entity_id': 's1'},
            is_primary=True,
            aliases=['logotipo', ' ', 'marca']
        ))

        assert resource['normalized_title'] == 'logo finomik'
        assert resource['status'] == 'draft'
        assert sorted(resource['aliases']) == ['logotipo', 'marca']
        assert resource['linked_to'] == 'client (s1)'
        assert resource['is_primary_for_entity'] is True

    def test_create_validation(self, resources):
        """Test that unknown types and bad URLs are rejected"""
        with pytest.raises(ValidationError):
            resources.create_resource(resource_data(type='poster'))
        with pytest.raises(ValidationError):
            resources.create_resource(resource_data(url='not a url'))

    def test_linking_twice_returns_existing(self, resources):
        """Test that a duplicate link is not created"""
        resource = resources.create_resource(resource_data())
        first = resources.link_resource(resource['id'], 'deal', 'd1')
        second = resources.link_resource(resource['id'], 'deal', 'd1')

        assert first['id'] == second['id']
        assert len(resources.get_resource(resource['id'])['links']) == 1

    def test_internal_links_have_no_entity(self, resources):
        """Test that internal links drop the entity id"""
        resource = resources.create_resource(resource_data())
        link = resources.link_resource(resource['id'], 'internal', 'ignored')
        assert link['entity_id'] is None

    def test_set_primary_demotes_previous(self, resources):
        """Test that only one resource is primary for an entity"""
        first = resources.create_resource(resource_data(title='Deck v1', type='deck'))
        second = resources.create_resource(resource_data(title='Deck v2', type='deck'))
        first_link = resources.link_resource(first['id'], 'client', 's1', is_primary=True)
        second_link = resources.link_resource(second['id'], 'client', 's1')

        resources.set_primary_link(second_link['id'])
        by_entity = resources.get_resources_by_entity('client', 's1')

        assert [r['title'] for r in by_entity['primary']] == ['Deck v2']
        assert [r['title'] for r in by_entity['others']] == ['Deck v1']
        assert first_link['is_primary'] is True

    def test_list_filters(self, resources, folders):
        """Test filtering by entity, primary flag, folder and search"""
        folder = folders.create_folder('Marca')
        linked = resources.create_resource(resource_data(title='Logo', folder_id=folder['id'],
                                                         description='Versión azul'))
        other = resources.create_resource(resource_data(title='Plantilla', type='template'))
        resources.link_resource(linked['id'], 'project', 'p1', is_primary=True)
        resources.link_resource(other['id'], 'project', 'p1')

        assert {r['id'] for r in resources.list_resources(entity_type='project', entity_id='p1')} == {
            linked['id'], other['id']
        }
        assert [r['id'] for r in resources.list_resources(entity_type='project', only_primary=True)] == [linked['id']]
        assert [r['id'] for r in resources.list_resources(folder_id=folder['id'])] == [linked['id']]
        assert [r['id'] for r in resources.list_resources(folder_id=None)] == [other['id']]
        assert len(resources.list_resources(folder_id=ANY_FOLDER)) == 2
        assert [r['id'] for r in resources.list_resources(search='azul')] == [linked['id']]

    def test_picker_skips_archived(self, resources):
        """Test that archived resources are hidden from the picker"""
        kept = resources.create_resource(resource_data(title='B'))
        archived = resources.create_resource(resource_data(title='A'))
        assert resources.archive_resource(archived['id']) is True

        assert [r['id'] for r in resources.list_for_picker()] == [kept['id']]

    def test_aliases(self, resources):
        """Test adding and removing aliases"""
        resource = resources.create_resource(resource_data())
        assert resources.add_alias(resource['id'], '  ') is None
        alias = resources.add_alias(resource['id'], 'isotipo')

        assert resources.get_resource(resource['id'])['aliases'] == ['isotipo']
        assert resources.remove_alias(alias['id']) is True
        assert resources.get_resource(resource['id'])['aliases'] == []

    def test_delete_resource(self, resources):
        """Test that deleting a resource removes its links"""
        resource = resources.create_resource(resource_data(link_to={'entity_type': 'task', 'entity_id': 't1'}))
        assert resources.delete_resource(resource['id']) is True
        assert resources.get_resource(resource['id']) is None
        assert resources.delete_resource(resource['id']) is False


@pytest.mark.unit
class TestResourceFolders:
    """Tests for the folder tree"""

    def test_build_folder_tree(self):
        """Test nesting a flat folder list"""
        tree = build_folder_tree([
            {'id': 'a', 'parent_id': None, 'name': 'A'},
            {'id': 'b', 'parent_id': 'a', 'name': 'B'},
            {'id': 'c', 'parent_id': 'b', 'name': 'C'},
        ])
        assert tree[0]['name'] == 'A'
        assert tree[0]['children'][0]['children'][0]['name'] == 'C'

    def test_ensure_default_folders_is_idempotent(self, folders):
        """Test that root folders are only created once"""
        assert folders.ensure_default_folders() == len(DEFAULT_ROOT_FOLDERS)
        assert folders.ensure_default_folders() == 0
        assert {f['name'] for f in folders.get_tree()} == set(DEFAULT_ROOT_FOLDERS)

    def test_school_folders_under_leads(self, folders, school_factory):
        """Test that every school gets one folder below Leads"""
        school = school_factory(name='Colegio Mar')
        folders.ensure_default_folders()

        assert folders.ensure_school_folders_exist() == 1
        assert folders.ensure_school_folders_exist() == 0

        leads = next(f for f in folders.get_tree() if f['name'] == 'Leads')
        assert [(c['name'], c['school_id']) for c in leads['children']] == [('Colegio Mar', school['id'])]

    def test_school_folders_need_leads_root(self, folders, school_factory):
        """Test that nothing is created without the Leads folder"""
        school_factory()
        assert folders.ensure_school_folders_exist() == 0

    def test_rename_requires_name(self, folders):
        """Test renaming and rejecting blank names"""
        folder = folders.create_folder('Viejo')
        assert folders.rename_folder(folder['id'], 'Nuevo')['name'] == 'Nuevo'
        with pytest.raises(ValidationError):
            folders.rename_folder(folder['id'], ' ')

    def test_delete_folder_unfiles_resources(self, folders, resources):
        """Test that deleting a folder removes subfolders and keeps resources unfiled"""
        parent = folders.create_folder('Padre')
        child = folders.create_folder('Hijo', parent_id=parent['id'])
        resource = resources.create_resource(resource_data(folder_id=child['id']))

        assert folders.delete_folder(parent['id']) is True
        assert folders.get_folder(child['id']) is None
        assert resources.get_resource(resource['id'])['folder_id'] is None

    def test_client_resources_include_folder_contents(self, folders, resources, school_factory):
        """Test that a client's resources include linked and filed ones"""
        school = school_factory()
        client_folder = folders.create_folder('Cliente', school_id=school['id'])
        sub_folder = folders.create_folder('Contratos', parent_id=client_folder['id'])
        filed = resources.create_resource(resource_data(title='Contrato', folder_id=sub_folder['id']))
        linked = resources.create_resource(resource_data(
            title='Logo', link_to={'entity_type': 'client', 'entity_id': school['id']}
        ))
        resources.create_resource(resource_data(title='Otro'))

        ids = {r['id'] for r in resources.get_resources_for_client(school['id'])}
        assert ids == {filed['id'], linked['id']}
