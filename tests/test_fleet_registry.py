import uuid

from conftest import machinery, report_payload
from shift_reports.schemas.reports import ReportCreate, ReportUpdate
from shift_reports.services import fleet_registry, report_engine
from shift_reports.services.errors import DependencyUnavailable


def _create(db, project, acting, **overrides):
    return report_engine.create_report(db, ReportCreate(**report_payload(project, **overrides)), acting)


def test_last_entry_in_report_wins(db, project, acting, make_vehicle):
    vehicle = make_vehicle(odometer_start=1000)

    _create(db, project, acting, machinery_entries=[
        machinery(vehicle, 1000, 1100),
        machinery(vehicle, 1100, 1150),
    ])

    assert vehicle.odometer_end == 1150
    assert vehicle.hours_operated == 150


def test_backdated_report_does_not_move_odometer_back(db, project, acting, make_vehicle):
    vehicle = make_vehicle(odometer_start=1000)

    _create(db, project, acting, date="2026-10-02", machinery_entries=[machinery(vehicle, 1100, 1200)])
    _create(db, project, acting, date="2026-10-01", machinery_entries=[machinery(vehicle, 1000, 1100)])

    assert vehicle.odometer_end == 1200
    assert vehicle.hours_operated == 200


def test_update_recomputes_vehicle(db, project, acting, make_vehicle):
    vehicle = make_vehicle(odometer_start=1000)
    report = _create(db, project, acting, machinery_entries=[machinery(vehicle, 1000, 1100)]).report

    report_engine.update_report(
        db, report.id, ReportUpdate(machinery_entries=[machinery(vehicle, 1000, 1080)]), acting,
    )

    assert vehicle.odometer_end == 1080
    assert vehicle.hours_operated == 80


def test_removed_vehicle_is_recomputed(db, project, acting, make_vehicle):
    vehicle = make_vehicle(odometer_start=1000)
    report = _create(db, project, acting, machinery_entries=[machinery(vehicle, 1000, 1100)]).report
    assert vehicle.odometer_end == 1100

    report_engine.update_report(db, report.id, ReportUpdate(machinery_entries=[]), acting)

    assert vehicle.odometer_end == 1000
    assert vehicle.hours_operated == 0


def test_swapped_vehicles_are_both_synced(db, project, acting, make_vehicle, monkeypatch):
    old = make_vehicle("CV-01")
    new = make_vehicle("CV-02", odometer_start=4000)
    report = _create(db, project, acting, machinery_entries=[machinery(old, 1000, 1010)]).report

    synced = []
    original = fleet_registry.recompute_vehicle

    def _spy(session, vehicle_id):
        synced.append(str(vehicle_id))
        return original(session, vehicle_id)

    monkeypatch.setattr(fleet_registry, "recompute_vehicle", _spy)
    report_engine.update_report(
        db, report.id, ReportUpdate(machinery_entries=[machinery(new, 4000, 4012)]), acting,
    )

    assert synced == [str(old.id), str(new.id)]
    assert old.odometer_end == 1000
    assert new.odometer_end == 4012
    assert new.hours_operated == 12


def test_fleet_failure_becomes_warning(db, project, acting, make_vehicle, monkeypatch):
    vehicle = make_vehicle()

    def _down(session, vehicle_id):
        raise DependencyUnavailable("Fleet registry unavailable: OperationalError")

    monkeypatch.setattr(fleet_registry, "recompute_vehicle", _down)
    result = _create(db, project, acting, machinery_entries=[machinery(vehicle, 1000, 1100)])

    assert result.warnings == [{
        "kind": "dependency_unavailable",
        "vehicle_id": str(vehicle.id),
        "message": "Report saved but vehicle hour-meter could not be updated",
    }]
    stored = report_engine.get_report(db, result.report.id)
    assert stored.machinery_entries[0]["odometer_end"] == 1100
    assert vehicle.odometer_end == 1000


def test_fleet_failure_on_update_keeps_history(db, project, acting, make_vehicle, monkeypatch):
    vehicle = make_vehicle()
    report = _create(db, project, acting, machinery_entries=[machinery(vehicle, 1000, 1100)]).report

    def _down(session, vehicle_id):
        raise DependencyUnavailable("down")

    monkeypatch.setattr(fleet_registry, "recompute_vehicle", _down)
    result = report_engine.update_report(
        db, report.id, ReportUpdate(machinery_entries=[machinery(vehicle, 1000, 1200)]), acting,
    )

    assert len(result.warnings) == 1
    assert len(report_engine.get_modification_history(db, report.id)) == 1

    monkeypatch.undo()
    fleet_registry.recompute_vehicle(db, vehicle.id)
    db.commit()
    assert vehicle.odometer_end == 1200


def test_apply_unknown_vehicle_returns_none(db):
    assert fleet_registry.apply_machinery_usage(db, uuid.uuid4(), 100.0, 5.0) is None


def test_apply_is_idempotent(db, make_vehicle):
    vehicle = make_vehicle(odometer_start=1000)

    fleet_registry.apply_machinery_usage(db, vehicle.id, 1050.0, 50.0)
    fleet_registry.apply_machinery_usage(db, str(vehicle.id), 1050.0, 50.0)
    db.commit()

    assert vehicle.odometer_end == 1050
    assert vehicle.hours_operated == 50


def test_apply_without_reading_resets_to_baseline(db, make_vehicle):
    vehicle = make_vehicle(odometer_start=1000)
    fleet_registry.apply_machinery_usage(db, vehicle.id, 1300.0)
    fleet_registry.apply_machinery_usage(db, vehicle.id, None)
    db.commit()

    assert vehicle.odometer_end == 1000
    assert vehicle.hours_operated == 0


def test_usage_history_order(db, project, acting, make_vehicle):
    vehicle = make_vehicle()
    late = _create(db, project, acting, date="2026-10-05", machinery_entries=[machinery(vehicle, 1020, 1030)]).report
    early = _create(db, project, acting, date="2026-10-04", machinery_entries=[
        machinery(vehicle, 1000, 1010),
        machinery(vehicle, 1010, 1020),
    ]).report

    rows = fleet_registry.usage_history(db, vehicle.id)

    assert [(r.report_id, r.position) for r in rows] == [(early.id, 0), (early.id, 1), (late.id, 0)]


def test_build_usage_skips_rows_without_vehicle_or_reading():
    vid = str(uuid.uuid4())
    rows = fleet_registry.build_machinery_usage([
        {"vehicle_id": None, "odometer_end": 10},
        {"vehicle_id": vid, "odometer_end": None},
        {"vehicle_id": vid, "odometer_start": 5, "odometer_end": 9, "hours_operated": 4},
    ])

    assert len(rows) == 1
    assert rows[0].position == 2
    assert str(rows[0].vehicle_id) == vid
    assert rows[0].hours_operated == 4
