from costcalc import create_app
from costcalc.cost_rate import COST_RATE_SETTINGS_KEY, DEFAULT_COST_RATE_SETTINGS
from costcalc.models import db, AppSetting, AuditLog
from costcalc.settings_store import CostRateSettingsStore


class TestCostRateSettingsStore:

    def test_load_without_stored_settings(self, ctx):
        assert CostRateSettingsStore().load() == DEFAULT_COST_RATE_SETTINGS

    def test_update_merges_and_persists(self, ctx):
        store = CostRateSettingsStore()
        settings = store.update({'target_cost_rate': 25})
        assert settings == {'target_cost_rate': 25, 'warn_cost_rate': 35, 'danger_cost_rate': 40}

        row = db.session.get(AppSetting, COST_RATE_SETTINGS_KEY)
        assert row.get_value() == settings
        assert store.load() == settings

    def test_update_keeps_order(self, ctx):
        settings = CostRateSettingsStore().update({'target_cost_rate': 45})
        assert settings == {'target_cost_rate': 45, 'warn_cost_rate': 45, 'danger_cost_rate': 45}

    def test_update_ignores_unknown_keys(self, ctx):
        settings = CostRateSettingsStore().update({'colour': 'red', 'danger_cost_rate': 60})
        assert set(settings) == set(DEFAULT_COST_RATE_SETTINGS)
        assert settings['danger_cost_rate'] == 60

    def test_stored_settings_are_sanitized_on_load(self, ctx):
        row = AppSetting(key=COST_RATE_SETTINGS_KEY)
        row.set_value({'target_cost_rate': 80, 'warn_cost_rate': 20, 'danger_cost_rate': 500})
        db.session.add(row)
        db.session.commit()

        assert CostRateSettingsStore().load() == {
            'target_cost_rate': 80, 'warn_cost_rate': 80, 'danger_cost_rate': 100
        }

    def test_corrupt_blob_falls_back_to_defaults(self, ctx):
        db.session.add(AppSetting(key=COST_RATE_SETTINGS_KEY, value='{not json'))
        db.session.commit()
        assert CostRateSettingsStore().load() == DEFAULT_COST_RATE_SETTINGS

    def test_non_object_blob_falls_back_to_defaults(self, ctx):
        db.session.add(AppSetting(key=COST_RATE_SETTINGS_KEY, value='[1, 2, 3]'))
        db.session.commit()
        assert CostRateSettingsStore().load() == DEFAULT_COST_RATE_SETTINGS

    def test_reset(self, ctx):
        store = CostRateSettingsStore()
        store.update({'target_cost_rate': 10, 'warn_cost_rate': 12, 'danger_cost_rate': 14})
        assert store.reset() == DEFAULT_COST_RATE_SETTINGS
        assert store.load() == DEFAULT_COST_RATE_SETTINGS


class TestSettingsRoutes:

    def test_get_defaults(self, client):
        response = client.get('/settings/cost_rate')
        assert response.status_code == 200
        assert response.get_json()['settings'] == DEFAULT_COST_RATE_SETTINGS

    def test_update_is_persisted(self, app, client):
        response = client.post('/settings/cost_rate', json={'warn_cost_rate': 38})
        assert response.status_code == 200
        assert response.get_json()['settings']['warn_cost_rate'] == 38
        assert client.get('/settings/cost_rate').get_json()['settings']['warn_cost_rate'] == 38

        with app.app_context():
            assert AuditLog.query.filter_by(target_type='Settings').count() == 1

    def test_blank_form_fields_are_ignored(self, client):
        response = client.post('/settings/cost_rate', data={'target_cost_rate': '', 'danger_cost_rate': '45'})
        settings = response.get_json()['settings']
        assert settings['target_cost_rate'] == 30
        assert settings['danger_cost_rate'] == 45

    def test_inverted_values_are_corrected(self, client):
        response = client.post('/settings/cost_rate', json={
            'target_cost_rate': 40, 'warn_cost_rate': 30, 'danger_cost_rate': 20
        })
        assert response.get_json()['settings'] == {
            'target_cost_rate': 40, 'warn_cost_rate': 40, 'danger_cost_rate': 40
        }

    def test_reset(self, app, client):
        client.post('/settings/cost_rate', json={'target_cost_rate': 10})
        response = client.post('/settings/cost_rate/reset')
        assert response.get_json()['settings'] == DEFAULT_COST_RATE_SETTINGS
        assert client.get('/settings/cost_rate').get_json()['settings'] == DEFAULT_COST_RATE_SETTINGS

    def test_settings_are_reloaded_at_start(self, tmp_path):
        database = f"sqlite:///{tmp_path / 'settings.db'}"
        config = {'TESTING': True, 'SQLALCHEMY_DATABASE_URI': database, 'UPLOAD_FOLDER': str(tmp_path)}

        first = create_app(config)
        first.test_client().post('/settings/cost_rate', json={'target_cost_rate': 22})

        second = create_app(config).test_client()
        assert second.get('/settings/cost_rate').get_json()['settings']['target_cost_rate'] == 22

    def test_updates_are_seen_by_other_app_instances(self, tmp_path):
        database = f"sqlite:///{tmp_path / 'shared.db'}"
        config = {'TESTING': True, 'SQLALCHEMY_DATABASE_URI': database, 'UPLOAD_FOLDER': str(tmp_path)}
        first = create_app(config).test_client()
        second = create_app(config).test_client()

        menu = second.post('/menus/add', json={'name': 'Curry', 'sales_price': 1000}).get_json()
        assert second.get('/settings/cost_rate').get_json()['settings']['target_cost_rate'] == 30

        first.post('/settings/cost_rate', json={'target_cost_rate': 0, 'warn_cost_rate': 0, 'danger_cost_rate': 0})

        assert second.get('/settings/cost_rate').get_json()['settings']['danger_cost_rate'] == 0
        evaluation = second.get(f"/menus/{menu['id']}").get_json()['evaluation']
        assert evaluation['tone'] == 'danger'
