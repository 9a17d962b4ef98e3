"""Flask JSON API for the equipment cooperative."""

from functools import wraps
from pathlib import Path

from flask import Flask, current_app, g, jsonify, request

from agrocoop import (
    BILLING_PERIODS,
    AlertVariant,
    Capability,
    CoopError,
    MaintenanceAlert,
    OrderStatus,
    Page,
    ScheduleEntry,
    ServiceOrder,
    User,
    clean_settings,
    delete_row,
    get_registry,
    has_permission,
    insert_row,
    load_fleet,
    log_action,
    save_review,
    save_schedule_entry,
    save_service_order,
    save_settings,
    select_rows,
    to_number,
    update_row,
)
from agrocoop.config import Config

app = Flask(__name__)
app.config.from_object(Config)

REGISTRY_TABLES = "any(tractors, implements, producers)"


def data_file() -> Path:
    return Path(current_app.config["DATA_FILE"])


def json_body() -> dict:
    """The request's JSON object ({} when there is no body)."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise CoopError("Request body must be a JSON object")
    return payload


def alert_to_json(alert: MaintenanceAlert) -> dict:
    return {
        "tractorId": alert.tractor_id,
        "tractorName": alert.tractor_name,
        "currentHorimeter": alert.current_horimeter,
        "nextMaintenanceAt": alert.next_maintenance_at,
        "hoursUntilDue": alert.hours_until_due,
        "hoursOverdue": alert.hours_overdue,
        "status": alert.status.name.lower(),
    }


def order_to_json(order: ServiceOrder) -> dict:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "producerId": order.producer_id,
        "tractorId": order.tractor_id,
        "implementId": order.implement_id,
        "status": order.status.value,
        "initialHorimeter": order.initial_horimeter,
        "finalHorimeter": order.final_horimeter,
        "rentalDays": order.rental_days,
        "createdAt": order.created_at,
        "closedAt": order.closed_at,
        "totalCost": order.total_cost,
    }


def schedule_to_json(entry: ScheduleEntry, fleet) -> dict:
    return {
        "id": entry.id,
        "equipmentType": entry.equipment_type,
        "equipmentId": entry.equipment_id,
        "equipmentName": fleet.equipment_name(entry.equipment_type, entry.equipment_id),
        "producerId": entry.producer_id,
        "producerName": fleet.producer_name(entry.producer_id),
        "startTime": entry.start_time,
        "description": entry.description,
    }


def user_to_json(user: User, fleet) -> dict:
    role = fleet.get_role(user.role_id)
    return {
        "id": user.id,
        "username": user.username,
        "fullName": user.full_name,
        "roleId": user.role_id,
        "roleName": role.name if role else user.role,
        "status": user.status,
    }


def error(message: str, status: int):
    return jsonify({"error": message}), status


def requires(page: Page, capability: Capability):
    """
    Load a fresh snapshot and check the X-User header against it.

    The snapshot and user are exposed as g.fleet and g.user.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            g.fleet = load_fleet(data_file())
            g.user = g.fleet.get_user(request.headers.get("X-User"))
            if g.user is None:
                return error("Unknown or missing user", 401)
            if not has_permission(g.fleet.permissions_for(g.user), page, capability):
                app.logger.warning(
                    "Denied %s %s to %s", capability.value, page.value, g.user.username
                )
                return error(f"Not allowed to {capability.value} {page.value}", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


@app.errorhandler(CoopError)
def handle_coop_error(e):
    return error(str(e), 400)


@app.route("/")
@requires(Page.DASHBOARD, Capability.VIEW)
def index():
    """Dashboard summary: open orders, schedules and overdue tractors."""
    fleet = g.fleet
    alerts = fleet.maintenance_alerts(AlertVariant.DASHBOARD)
    next_entry = fleet.next_schedule()
    return jsonify(
        {
            "associationName": fleet.association_name,
            "welcome": g.user.full_name.split(" ")[0],
            "openServices": len(fleet.get_orders(OrderStatus.OPEN)),
            "schedules": len(fleet.schedules),
            "alertCount": len(alerts),
            "overdue": [alert_to_json(a) for a in alerts if a.is_overdue],
            "nextSchedule": None
            if next_entry is None
            else {
                "id": next_entry.id,
                "producerName": fleet.producer_name(next_entry.producer_id),
                "equipmentName": fleet.equipment_name(
                    next_entry.equipment_type, next_entry.equipment_id
                ),
                "startTime": next_entry.start_time,
            },
        }
    )


@app.route("/alerts")
@requires(Page.MAINTENANCE, Capability.VIEW)
def alerts():
    variant_name = request.args.get("variant", AlertVariant.DASHBOARD.value)
    try:
        variant = AlertVariant(variant_name)
    except ValueError:
        return error(f"Unknown variant '{variant_name}'", 400)
    found = g.fleet.maintenance_alerts(variant)
    found.sort(key=lambda a: (a.status.value, a.hours_until_due))
    return jsonify([alert_to_json(a) for a in found])


@app.route("/ledger")
@requires(Page.MAINTENANCE, Capability.VIEW)
def ledger():
    """This month's balance per tractor, keyed by tractor id."""
    ledgers = g.fleet.monthly_ledger()
    return jsonify(
        {
            tractor_id: {
                "totalHours": data.total_hours,
                "totalRevenue": data.total_revenue,
                "totalExpenses": data.total_expenses,
                "costPerHour": data.cost_per_hour,
                "balance": data.balance,
                "isProfitable": data.is_profitable,
            }
            for tractor_id, data in ledgers.items()
        }
    )


@app.route("/autonomy")
@requires(Page.FUELING, Capability.VIEW)
def autonomy():
    fleet = g.fleet
    return jsonify(
        [
            {
                "tractorId": tractor_id,
                "tractorName": fleet.get_tractor(tractor_id).name,
                "hoursPerLiter": data.hours_per_liter,
                "costPerHour": data.cost_per_hour,
                "totalHours": data.total_hours,
                "totalLiters": data.total_liters,
            }
            for tractor_id, data in fleet.autonomy().items()
        ]
    )


@app.route("/billing")
@requires(Page.BILLING, Capability.VIEW)
def billing():
    period = request.args.get("period", "this_month")
    if period not in BILLING_PERIODS:
        return error(f"Unknown period '{period}'", 400)
    summary = g.fleet.billing(period)
    return jsonify(
        {
            "period": summary.period,
            "totalRevenue": summary.total_revenue,
            "orders": [order_to_json(o) for o in summary.orders],
        }
    )


@app.route("/orders", methods=["GET"])
@requires(Page.SERVICES, Capability.VIEW)
def list_orders():
    status_name = request.args.get("status")
    try:
        status = OrderStatus(status_name) if status_name else None
    except ValueError:
        return error(f"Unknown status '{status_name}'", 400)
    return jsonify([order_to_json(o) for o in g.fleet.get_orders(status)])


@app.route("/orders", methods=["POST"])
@requires(Page.SERVICES, Capability.CREATE)
def open_order():
    """Open a service order, optionally consuming a schedule entry."""
    payload = json_body()
    fleet = g.fleet

    order = fleet.build_new_order(
        payload.get("producerId"),
        payload.get("tractorId"),
        payload.get("implementId"),
        to_number(payload.get("initialHorimeter"), "initialHorimeter"),
    )
    stored = save_service_order(data_file(), order)

    schedule_id = payload.get("scheduleId")
    if schedule_id:
        try:
            delete_row(data_file(), "schedules", schedule_id)
        except KeyError:
            app.logger.warning("Schedule %s not found when opening order", schedule_id)

    log_action(
        data_file(),
        g.user,
        "create_service_order",
        {
            "orderNumber": order.order_number,
            "producerName": fleet.producer_name(order.producer_id),
        },
    )
    order.id = stored["id"]
    return jsonify(order_to_json(order)), 201


@app.route("/orders/<order_id>/close", methods=["POST"])
@requires(Page.SERVICES, Capability.EDIT)
def close_order(order_id: str):
    payload = json_body()
    fleet = g.fleet
    if fleet.get_order(order_id) is None:
        return error(f"Service order '{order_id}' not found", 404)

    order = fleet.build_closed_order(
        order_id,
        to_number(payload.get("finalHorimeter"), "finalHorimeter"),
        to_number(payload.get("rentalDays"), "rentalDays", integer=True),
    )
    save_service_order(data_file(), order)
    log_action(
        data_file(),
        g.user,
        "close_service_order",
        {
            "orderNumber": order.order_number,
            "producerName": fleet.producer_name(order.producer_id),
            "totalCost": order.total_cost,
        },
    )
    return jsonify(order_to_json(order))


@app.route("/tractors/<tractor_id>/review", methods=["POST"])
@requires(Page.MAINTENANCE, Capability.CREATE)
def review_tractor(tractor_id: str):
    """Confirm a preventive review; horimeter defaults to the latest fueling."""
    payload = json_body()
    fleet = g.fleet
    tractor = fleet.get_tractor(tractor_id)
    if tractor is None:
        return error(f"Tractor '{tractor_id}' not found", 404)

    record = fleet.build_review(
        tractor_id, to_number(payload.get("horimeter"), "horimeter")
    )
    stored = save_review(data_file(), record)
    log_action(
        data_file(),
        g.user,
        "confirm_maintenance_review",
        {"tractorName": tractor.name, "horimeter": record.horimeter},
    )
    return jsonify({"id": stored["id"], "horimeter": record.horimeter}), 201


@app.route("/fuelings/<fueling_id>", methods=["DELETE"])
@requires(Page.FUELING, Capability.EDIT)
def delete_fueling(fueling_id: str):
    fleet = g.fleet
    fueling = fleet.get_fueling(fueling_id)
    if fueling is None:
        return error(f"Fueling '{fueling_id}' not found", 404)

    delete_row(data_file(), "fuelings", fueling_id)
    tractor = fleet.get_tractor(fueling.tractor_id)
    log_action(
        data_file(),
        g.user,
        "delete_fueling",
        {
            "tractorName": tractor.name if tractor else "Unknown",
            "liters": fueling.liters,
        },
    )
    return "", 204


# =============================================================================
# Registries
# =============================================================================


@app.route(f"/<{REGISTRY_TABLES}:table>", methods=["GET"])
@requires(Page.REGISTRIES, Capability.VIEW)
def list_records(table: str):
    return jsonify(select_rows(data_file(), table))


@app.route(f"/<{REGISTRY_TABLES}:table>", methods=["POST"])
@requires(Page.REGISTRIES, Capability.CREATE)
def create_record(table: str):
    registry = get_registry(table)
    fields = registry.clean(json_body())
    stored = insert_row(data_file(), table, fields)
    log_action(
        data_file(),
        g.user,
        f"create_{registry.singular}",
        {registry.log_key: registry.label(stored)},
    )
    return jsonify(stored), 201


@app.route(f"/<{REGISTRY_TABLES}:table>/<row_id>", methods=["PUT"])
@requires(Page.REGISTRIES, Capability.EDIT)
def update_record(table: str, row_id: str):
    registry = get_registry(table)
    if g.fleet.registry_name(table, row_id) is None:
        return error(f"No record '{row_id}' in {table}", 404)

    changes = registry.clean(json_body(), partial=True)
    stored = update_row(data_file(), table, row_id, changes)
    log_action(
        data_file(),
        g.user,
        f"update_{registry.singular}",
        {registry.log_key: registry.label(stored)},
    )
    return jsonify(stored)


@app.route(f"/<{REGISTRY_TABLES}:table>/<row_id>", methods=["DELETE"])
@requires(Page.REGISTRIES, Capability.EDIT)
def delete_record(table: str, row_id: str):
    """Remove a registry record that nothing else refers to."""
    registry = get_registry(table)
    fleet = g.fleet
    name = fleet.registry_name(table, row_id)
    if name is None:
        return error(f"No record '{row_id}' in {table}", 404)

    refs = fleet.references(table, row_id)
    if refs:
        return jsonify({"error": f"'{name}' is still in use", "references": refs}), 409

    delete_row(data_file(), table, row_id)
    log_action(data_file(), g.user, f"delete_{registry.singular}", {registry.log_key: name})
    return "", 204


# =============================================================================
# Schedule queue
# =============================================================================


@app.route("/schedules", methods=["GET"])
@requires(Page.SCHEDULES, Capability.VIEW)
def list_schedules():
    fleet = g.fleet
    entries = sorted(fleet.schedules, key=lambda s: s.start_time)
    return jsonify([schedule_to_json(s, fleet) for s in entries])


@app.route("/schedules", methods=["POST"])
@requires(Page.SCHEDULES, Capability.CREATE)
def create_schedule():
    payload = json_body()
    fleet = g.fleet
    entry = fleet.build_schedule_entry(
        payload.get("equipmentType"),
        payload.get("equipmentId"),
        payload.get("producerId"),
        payload.get("startTime"),
        payload.get("description"),
    )
    stored = save_schedule_entry(data_file(), entry)
    entry.id = stored["id"]
    body = schedule_to_json(entry, fleet)
    log_action(
        data_file(),
        g.user,
        "create_schedule",
        {"producerName": body["producerName"], "equipmentName": body["equipmentName"]},
    )
    return jsonify(body), 201


@app.route("/schedules/<schedule_id>", methods=["DELETE"])
@requires(Page.SCHEDULES, Capability.EDIT)
def delete_schedule(schedule_id: str):
    fleet = g.fleet
    entry = fleet.get_schedule(schedule_id)
    if entry is None:
        return error(f"Schedule '{schedule_id}' not found", 404)

    body = schedule_to_json(entry, fleet)
    delete_row(data_file(), "schedules", schedule_id)
    log_action(
        data_file(),
        g.user,
        "delete_schedule",
        {"producerName": body["producerName"], "equipmentName": body["equipmentName"]},
    )
    return "", 204


# =============================================================================
# Accounts and settings
# =============================================================================


@app.route("/users", methods=["GET"])
@requires(Page.SETTINGS, Capability.VIEW)
def list_users():
    fleet = g.fleet
    return jsonify([user_to_json(u, fleet) for u in fleet.users])


@app.route("/users/<username>", methods=["PUT"])
@requires(Page.SETTINGS, Capability.EDIT)
def update_user(username: str):
    """Approve a user or change their role: {"status": ..., "role": ...}."""
    payload = json_body()
    fleet = g.fleet
    if fleet.get_user(username) is None:
        return error(f"User '{username}' not found", 404)

    user, changes = fleet.build_user_update(
        username, payload.get("status"), payload.get("role")
    )
    if changes:
        update_row(data_file(), "users", user.id, changes)
        user.status = changes.get("status", user.status)
        user.role_id = changes.get("roleId", user.role_id)
        role = fleet.get_role(user.role_id)
        log_action(
            data_file(),
            g.user,
            "update_user",
            {
                "targetUserName": user.username,
                "status": user.status,
                "roleName": role.name if role else None,
            },
        )
    return jsonify(user_to_json(user, fleet))


@app.route("/settings", methods=["GET"])
@requires(Page.SETTINGS, Capability.VIEW)
def get_settings():
    settings = g.fleet.settings
    return jsonify(
        {
            "associationName": g.fleet.association_name,
            "pixKey": settings.get("pixKey"),
        }
    )


@app.route("/settings", methods=["PUT"])
@requires(Page.SETTINGS, Capability.EDIT)
def update_settings():
    changes = clean_settings(json_body())
    settings = save_settings(data_file(), changes)
    log_action(data_file(), g.user, "update_settings", changes)
    return jsonify(settings)


if __name__ == "__main__":
    app.run(debug=Config.DEBUG, host=Config.HOST, port=Config.PORT)
