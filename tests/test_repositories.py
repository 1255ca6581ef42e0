#!/usr/bin/env python3
"""
Unit tests for the commdesk/repositories layer.

Run with:
    python -m pytest tests/test_repositories.py
"""
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from commdesk.errors import CommdeskError
from commdesk.models import Client, Commission
from commdesk.repositories import (
    ClientRepository, CommissionRepository, FileStorage, parse_commission,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

OLD_STAMP = '2024-01-01T00:00:00Z'


def make_client(**overrides) -> Client:
    fields = dict(id='c1', name='Alice', created_at=OLD_STAMP, updated_at=OLD_STAMP)
    fields.update(overrides)
    return Client(**fields)


def make_commission(**overrides) -> Commission:
    fields = dict(
        id='ord1', client_id='c2', client_name='Bob/Smith', title='Portrait',
        price_cents=500, payment_status='Not Paid', status='pending',
        created_at=OLD_STAMP, updated_at=OLD_STAMP,
    )
    fields.update(overrides)
    return Commission(**fields)


class TmpDirMixin(unittest.TestCase):
    """Creates a fresh data root for each test."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.storage = FileStorage(self.tmp)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _path(self, *parts: str) -> str:
        return os.path.join(self.tmp, *parts)

    def _write_raw(self, rel_path: str, content) -> str:
        path = self._path(*rel_path.split('/'))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as fh:
            if isinstance(content, str):
                fh.write(content)
            else:
                json.dump(content, fh)
        return path

    def _write_bytes(self, rel_path: str, data: bytes) -> str:
        path = self._path(*rel_path.split('/'))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as fh:
            fh.write(data)
        return path


NOT_UTF8 = b'\xff\xfe{"id": "x"}'


# ===========================================================================
# FileStorage
# ===========================================================================

class TestFileStorage(TmpDirMixin):

    def test_ensure_data_folders_idempotent(self):
        self.storage.ensure_data_folders()
        self.storage.ensure_data_folders()
        for folder in ('clients', 'pendings', 'history'):
            self.assertTrue(os.path.isdir(self._path(folder)))

    def test_read_directory_json_files_skips_non_json(self):
        self._write_raw('x/a.json', {'a': 1})
        self._write_raw('x/b.txt', 'nope')
        os.makedirs(self._path('x', 'sub.json'))
        found = self.storage.read_directory_json_files(self._path('x'))
        self.assertEqual(len(found), 1)
        self.assertTrue(found[0][0].endswith('a.json'))
        self.assertEqual(json.loads(found[0][1]), {'a': 1})

    def test_read_text_not_utf8_is_serialization_error(self):
        target = self._write_bytes('x/bad.json', NOT_UTF8)
        with self.assertRaises(CommdeskError) as ctx:
            self.storage.read_text(target)
        self.assertEqual(ctx.exception.kind, 'serialization')

    def test_read_directory_json_files_skips_undecodable(self):
        self._write_raw('x/a.json', {'a': 1})
        self._write_bytes('x/bad.json', NOT_UTF8)
        with self.assertLogs('commdesk.repository.FileStorage', level='WARNING'):
            found = self.storage.read_directory_json_files(self._path('x'))
        self.assertEqual([os.path.basename(p) for p, _ in found], ['a.json'])

    def test_write_temp_file_failure_is_io_error(self):
        with patch('tempfile.mkstemp', side_effect=PermissionError(13, 'Permission denied')):
            with self.assertRaises(CommdeskError) as ctx:
                self.storage.write_json_file(self._path('clients', 'c1.json'), '{}')
        self.assertEqual(ctx.exception.kind, 'io')

    def test_read_missing_directory_is_empty(self):
        self.assertEqual(self.storage.read_directory_json_files(self._path('missing')), [])

    def test_write_creates_parents_and_overwrites(self):
        target = self._path('deep', 'er', 'f.json')
        self.storage.write_json_file(target, 'first')
        self.storage.write_json_file(target, 'second')
        with open(target) as fh:
            self.assertEqual(fh.read(), 'second')
        self.assertEqual(os.listdir(self._path('deep', 'er')), ['f.json'])

    def test_delete_missing_is_noop(self):
        self.assertFalse(self.storage.delete_file(self._path('ghost.json')))

    def test_delete_existing(self):
        target = self._write_raw('f.json', {})
        self.assertTrue(self.storage.delete_file(target))
        self.assertFalse(os.path.exists(target))

    def test_sanitize_filename(self):
        self.assertEqual(FileStorage.sanitize_filename('Bob/Smith'), 'Bob_Smith')
        self.assertEqual(FileStorage.sanitize_filename('a\\b:c*d?e"f<g>h|i'), 'a_b_c_d_e_f_g_h_i')
        self.assertEqual(FileStorage.sanitize_filename('Zoë Ünal'), 'Zoë Ünal')

    def test_sanitize_timestamp(self):
        self.assertEqual(FileStorage.sanitize_timestamp(OLD_STAMP), '2024-01-01T00-00-00Z')


# ===========================================================================
# ClientRepository
# ===========================================================================

class TestClientRepository(TmpDirMixin):

    def _make(self):
        return ClientRepository(self.storage)

    def test_save_writes_clients_id_json(self):
        path = self._make().save(make_client())
        self.assertEqual(path, self._path('clients', 'c1.json'))
        with open(path) as fh:
            self.assertEqual(json.load(fh)['name'], 'Alice')

    def test_save_then_find_returns_equal_record(self):
        repo = self._make()
        client = make_client(email='a@b.co', contact='@alice', notes='likes cats',
                             profile_image='images/c1.png')
        repo.save(client)
        self.assertEqual(repo.find_by_id('c1'), client)

    def test_save_is_upsert(self):
        repo = self._make()
        repo.save(make_client())
        repo.save(make_client(name='Alice B'))
        self.assertEqual(repo.find_by_id('c1').name, 'Alice B')
        self.assertEqual(len(repo.find_all()), 1)

    def test_find_missing_returns_none(self):
        self.assertIsNone(self._make().find_by_id('nobody'))

    def test_delete_missing_is_not_an_error(self):
        self.assertFalse(self._make().delete('nobody'))

    def test_delete_existing(self):
        repo = self._make()
        repo.save(make_client())
        self.assertTrue(repo.delete('c1'))
        self.assertIsNone(repo.find_by_id('c1'))

    def test_find_all_skips_corrupt_files(self):
        repo = self._make()
        repo.save(make_client())
        repo.save(make_client(id='c2', name='Bea'))
        self._write_raw('clients/broken.json', 'NOT JSON')
        self._write_raw('clients/partial.json', {'id': 'c3'})
        with self.assertLogs('commdesk.repository.ClientRepository', level='WARNING'):
            clients = repo.find_all()
        self.assertEqual(sorted(c.id for c in clients), ['c1', 'c2'])

    def test_find_all_skips_non_utf8_file(self):
        repo = self._make()
        repo.save(make_client())
        self._write_bytes('clients/bad.json', NOT_UTF8)
        with self.assertLogs('commdesk.repository.FileStorage', level='WARNING'):
            clients = repo.find_all()
        self.assertEqual([c.id for c in clients], ['c1'])

    def test_find_by_id_corrupt_raises(self):
        self._write_raw('clients/c9.json', '[1, 2]')
        with self.assertRaises(CommdeskError) as ctx:
            self._make().find_by_id('c9')
        self.assertEqual(ctx.exception.kind, 'serialization')

    def test_optional_fields_default(self):
        self._write_raw('clients/c5.json', {
            'id': 'c5', 'name': 'Eve', 'created_at': OLD_STAMP, 'updated_at': OLD_STAMP,
        })
        client = self._make().find_by_id('c5')
        self.assertEqual(client.email, '')
        self.assertEqual(client.contact, '')
        self.assertIsNone(client.profile_image)


# ===========================================================================
# Commission parsing
# ===========================================================================

class TestParseCommission(unittest.TestCase):

    def test_canonical(self):
        c = parse_commission(json.dumps(make_commission(price_cents=1234).to_dict()))
        self.assertEqual(c.price_cents, 1234)

    def test_legacy_price_converted(self):
        c = parse_commission(json.dumps({'id': 'old1', 'price': 12.34}))
        self.assertEqual(c.price_cents, 1234)

    def test_legacy_integer_price(self):
        self.assertEqual(parse_commission('{"price": 20}').price_cents, 2000)

    def test_price_cents_preferred_over_price(self):
        c = parse_commission(json.dumps({'price_cents': 100, 'price': 99.0}))
        self.assertEqual(c.price_cents, 100)

    def test_missing_price_fails(self):
        with self.assertRaises(CommdeskError) as ctx:
            parse_commission('{"id": "x"}')
        self.assertEqual(str(ctx.exception), 'Missing price or price_cents')

    def test_defaults_for_absent_fields(self):
        c = parse_commission('{"price_cents": 1}')
        self.assertEqual(c.id, '')
        self.assertEqual(c.description, '')
        self.assertEqual(c.payment_status, 'Not Paid')
        self.assertEqual(c.status, 'pending')
        self.assertEqual(c.images, [])

    def test_non_string_images_dropped(self):
        c = parse_commission('{"price_cents": 1, "images": ["images/a.png", 3, null]}')
        self.assertEqual(c.images, ['images/a.png'])

    def test_invalid_json(self):
        with self.assertRaises(CommdeskError):
            parse_commission('{oops')


# ===========================================================================
# CommissionRepository
# ===========================================================================

class TestCommissionRepository(TmpDirMixin):

    def _make(self):
        return CommissionRepository(self.storage)

    def test_save_path_pending(self):
        path = self._make().save(make_commission())
        self.assertEqual(path, self._path('pendings', 'Bob_Smith', 'ord1_2024-01-01T00-00-00Z.json'))
        self.assertTrue(os.path.isfile(path))

    def test_completed_goes_to_history(self):
        repo = self._make()
        for status in ('pending', 'in-progress', 'completed'):
            rel = os.path.relpath(repo.save(make_commission(id=f'x_{status[:2]}', status=status)),
                                  self.tmp)
            expected_root = 'history' if status == 'completed' else 'pendings'
            self.assertEqual(rel.split(os.sep)[0], expected_root)

    def test_round_trip_price(self):
        repo = self._make()
        repo.save(make_commission(price_cents=1234))
        self.assertEqual(repo.find_by_status('pending')[0].price_cents, 1234)

    def test_round_trip_equal(self):
        repo = self._make()
        original = make_commission(description='desc', images=['images/ord1_a.jpg'])
        repo.save(original)
        self.assertEqual(repo.find_by_status('pending'), [original])

    def test_legacy_file_listed(self):
        self._write_raw('history/Old Client/old1_2020.json', {
            'id': 'old1', 'client_name': 'Old Client', 'title': 'Sketch',
            'price': 12.34, 'status': 'completed',
        })
        found = self._make().find_by_status('completed')
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].price_cents, 1234)

    def test_find_by_status_skips_corrupt(self):
        repo = self._make()
        repo.save(make_commission())
        self._write_raw('pendings/Bob_Smith/junk.json', 'NOT JSON')
        self._write_raw('pendings/Bob_Smith/noprice.json', {'id': 'np'})
        with self.assertLogs('commdesk.repository.CommissionRepository', level='WARNING'):
            found = repo.find_by_status('pending')
        self.assertEqual([c.id for c in found], ['ord1'])

    def test_find_by_status_skips_non_utf8_file(self):
        repo = self._make()
        repo.save(make_commission())
        self._write_bytes('pendings/Bob_Smith/bad.json', NOT_UTF8)
        with self.assertLogs('commdesk.repository.FileStorage', level='WARNING'):
            found = repo.find_by_status('pending')
        self.assertEqual([c.id for c in found], ['ord1'])

    def test_find_by_status_ignores_images_folder(self):
        repo = self._make()
        repo.save(make_commission())
        self._write_raw('pendings/Bob_Smith/images/meta.json', {'price_cents': 1, 'id': 'img'})
        self.assertEqual([c.id for c in repo.find_by_status('pending')], ['ord1'])

    def test_find_by_status_empty(self):
        self.assertEqual(self._make().find_by_status('completed'), [])

    # -- move --------------------------------------------------------------

    def test_move_pending_to_completed(self):
        repo = self._make()
        old_path = repo.save(make_commission())
        moved = repo.move_commission('ord1', 'pending', 'completed')

        self.assertEqual(moved.status, 'completed')
        self.assertFalse(os.path.exists(old_path))
        completed = repo.find_by_status('completed')
        self.assertEqual([c.id for c in completed], ['ord1'])
        self.assertEqual(completed[0].status, 'completed')
        self.assertGreater(completed[0].updated_at, OLD_STAMP)
        self.assertEqual(repo.find_by_status('pending'), [])

    def test_move_keeps_file_name(self):
        repo = self._make()
        repo.save(make_commission())
        repo.move_commission('ord1', 'pending', 'completed')
        self.assertTrue(os.path.isfile(
            self._path('history', 'Bob_Smith', 'ord1_2024-01-01T00-00-00Z.json')))

    def test_move_within_same_root_keeps_record(self):
        repo = self._make()
        path = repo.save(make_commission())
        repo.move_commission('ord1', 'pending', 'in-progress')
        self.assertTrue(os.path.isfile(path))
        found = repo.find_by_status('in-progress')
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].status, 'in-progress')

    def test_move_back_from_history(self):
        repo = self._make()
        repo.save(make_commission(status='completed'))
        repo.move_commission('ord1', 'completed', 'pending')
        self.assertEqual(repo.find_by_status('completed'), [])
        self.assertEqual(repo.find_by_status('pending')[0].status, 'pending')

    def test_move_missing_raises_not_found(self):
        with self.assertRaises(CommdeskError) as ctx:
            self._make().move_commission('nope', 'pending', 'completed')
        self.assertEqual(ctx.exception.kind, 'not_found')
        self.assertIn('nope', str(ctx.exception))

    def test_move_does_not_touch_prefix_sibling(self):
        repo = self._make()
        repo.save(make_commission(id='ab', client_name='Same'))
        sibling = repo.save(make_commission(id='abc', client_name='Same'))
        repo.move_commission('ab', 'pending', 'completed')
        self.assertTrue(os.path.isfile(sibling))
        self.assertEqual([c.id for c in repo.find_by_status('pending')], ['abc'])
        self.assertEqual([c.id for c in repo.find_by_status('completed')], ['ab'])

    def test_move_prefix_sibling_listed_first(self):
        repo = self._make()
        # "ab_2023..." sorts before "ab_2024..."; the exact-id match must still win.
        repo.save(make_commission(id='ab_2023', client_name='Same'))
        repo.save(make_commission(id='ab', client_name='Same'))
        repo.move_commission('ab', 'pending', 'completed')
        self.assertEqual([c.id for c in repo.find_by_status('pending')], ['ab_2023'])

    def test_move_stage_failure_reports_state(self):
        repo = self._make()
        source = repo.save(make_commission())
        with patch.object(self.storage, 'write_json_file',
                          side_effect=CommdeskError('disk full')):
            with self.assertRaises(CommdeskError) as ctx:
                repo.move_commission('ord1', 'pending', 'completed')
        self.assertEqual(ctx.exception.kind, 'move')
        self.assertEqual(ctx.exception.details['step'], 'stage')
        self.assertEqual(ctx.exception.details['source_path'], source)
        self.assertTrue(os.path.isfile(source))

    def test_move_stage_os_failure_reports_state(self):
        repo = self._make()
        source = repo.save(make_commission())
        with patch('tempfile.mkstemp', side_effect=PermissionError(13, 'Permission denied')):
            with self.assertRaises(CommdeskError) as ctx:
                repo.move_commission('ord1', 'pending', 'completed')
        self.assertEqual(ctx.exception.kind, 'move')
        self.assertEqual(ctx.exception.details['step'], 'stage')
        self.assertEqual(ctx.exception.details['source_path'], source)
        self.assertTrue(os.path.isfile(source))

    def test_move_cleanup_failure_leaves_duplicate(self):
        repo = self._make()
        source = repo.save(make_commission())
        with patch.object(self.storage, 'delete_file',
                          side_effect=CommdeskError('permission denied')):
            with self.assertRaises(CommdeskError) as ctx:
                repo.move_commission('ord1', 'pending', 'completed')
        self.assertEqual(ctx.exception.details['step'], 'cleanup')
        staged = ctx.exception.details['staged_path']
        self.assertTrue(os.path.isfile(staged))
        self.assertEqual(sorted(repo.find_duplicates()['ord1']), sorted([source, staged]))

    # -- delete / duplicates ------------------------------------------------

    def test_delete_by_id_and_status(self):
        repo = self._make()
        path = repo.save(make_commission())
        self.assertEqual(repo.delete_by_id_and_status('ord1', 'pending'), path)
        self.assertFalse(os.path.exists(path))

    def test_delete_exact_id_only(self):
        repo = self._make()
        repo.save(make_commission(id='ab', client_name='Same'))
        with self.assertRaises(CommdeskError):
            repo.delete_by_id_and_status('a', 'pending')
        self.assertEqual(len(repo.find_by_status('pending')), 1)

    def test_delete_wrong_status_not_found(self):
        repo = self._make()
        repo.save(make_commission())
        with self.assertRaises(CommdeskError) as ctx:
            repo.delete_by_id_and_status('ord1', 'completed')
        self.assertEqual(str(ctx.exception), 'Commission not found')

    def test_delete_legacy_record(self):
        path = self._write_raw('pendings/Old/old1_x.json', {'id': 'old1', 'price': 1.5})
        self._make().delete_by_id_and_status('old1', 'pending')
        self.assertFalse(os.path.exists(path))

    def test_id_reuse_with_new_created_at_produces_duplicate(self):
        repo = self._make()
        repo.save(make_commission())
        repo.save(make_commission(created_at='2024-02-02T00:00:00Z'))
        self.assertEqual(len(repo.find_duplicates()['ord1']), 2)

    def test_no_duplicates(self):
        repo = self._make()
        repo.save(make_commission())
        self.assertEqual(repo.find_duplicates(), {})


if __name__ == '__main__':
    unittest.main()
