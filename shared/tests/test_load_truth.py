"""
load_truth — merge and publish
"""
import json

import pytest

import load_truth


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.pending = []

    def set(self, key, value):
        self.pending.append((key, value))

    def execute(self):
        self.store.update(self.pending)


class FakeRedis:
    def __init__(self):
        self.store = {}

    def pipeline(self):
        return FakePipeline(self.store)


class TestMerge:
    def test_nested_overlay(self):
        base = {'components': {'tradebook': {'env': {'APP_SESSION_SECRET': 'change-me', 'TRADEBOOK_PORT': '3010'}}}}
        secrets = {'components': {'tradebook': {'env': {'APP_SESSION_SECRET': 's3cret'}}}}
        merged = load_truth.merge(base, secrets)
        assert merged['components']['tradebook']['env'] == {
            'APP_SESSION_SECRET': 's3cret', 'TRADEBOOK_PORT': '3010',
        }
        assert base['components']['tradebook']['env']['APP_SESSION_SECRET'] == 'change-me'

    def test_empty_sides(self):
        assert load_truth.merge(None, {'a': 1}) == {'a': 1}
        assert load_truth.merge({'a': 1}, None) == {'a': 1}


class TestPublish:
    def test_writes_document_version_and_stamp(self):
        r = FakeRedis()
        load_truth.publish(r, 'truth', {'version': '1.0.0', 'components': {}})
        assert json.loads(r.store['truth']) == {'version': '1.0.0', 'components': {}}
        assert r.store['truth:version'] == '1.0.0'
        assert r.store['truth:ts'].isdigit()

    def test_main_with_secrets(self, tmp_path, monkeypatch):
        truth = tmp_path / 'truth.json'
        truth.write_text(json.dumps({'version': '2', 'components': {'tradebook': {'env': {'A': '1'}}}}))
        secrets = tmp_path / 'secrets.json'
        secrets.write_text(json.dumps({'components': {'tradebook': {'env': {'B': '2'}}}}))

        fake = FakeRedis()
        monkeypatch.setattr(load_truth.redis.Redis, 'from_url', lambda url, **kwargs: fake)

        assert load_truth.main(['--truth', str(truth), '--secrets', str(secrets), '--key', 'tb']) == 0
        assert json.loads(fake.store['tb'])['components']['tradebook']['env'] == {'A': '1', 'B': '2'}

    def test_missing_secrets_file(self, tmp_path):
        truth = tmp_path / 'truth.json'
        truth.write_text('{}')
        with pytest.raises(SystemExit):
            load_truth.main(['--truth', str(truth), '--secrets', str(tmp_path / 'none.json')])
