# medbot/core/i18n.py
"""
Message catalog (Spanish, single language).

Keys are grouped by flow; `fmt` formats a template by key.
"""

WEEKDAY_NAMES = ("Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo")

MESSAGES = {
    # Buttons
    "btn_cancel": "Cancelar",
    "btn_daily": "Diaria",
    "btn_weekly": "X veces a la semana",
    "btn_done": "Listo",
    "btn_taken": "✅ Sí, la tomé",
    "btn_not_taken": "❌ No",
    "btn_delete_cancel": "Cancelar",
    # General
    "help_text": (
        "Puedo recordarte tus medicinas y ayudarte a tomar agua.\n"
        "/remind — nuevo recordatorio de medicina\n"
        "/water — plan de agua según tu peso\n"
        "/list — ver tus recordatorios activos\n"
        "/delete — eliminar un recordatorio\n"
        "/cancel — cancelar el paso actual\n"
        "Los recordatorios se guardan en memoria: si el bot se reinicia, "
        "tendrás que crearlos de nuevo."
    ),
    "unknown_input": "Entrada no válida, por favor usa /remind, /water, /list o /delete.",
    "nothing_to_cancel": "No hay nada que cancelar.",
    # Medicine wizard
    "ask_medicine_name": "Por favor, ingresa el nombre de la medicina.",
    "empty_medicine_name": "El nombre no puede estar vacío. Ingresa el nombre de la medicina.",
    "ask_frequency": (
        "Nombre de la medicina registrado: {name}. Ahora, por favor selecciona la "
        "frecuencia: Diaria o X veces a la semana."
    ),
    "invalid_frequency": "Por favor, selecciona una opción válida: Diaria, X veces a la semana.",
    "ask_time": "Por favor, ingresa la hora de la notificación (formato 24h, por ejemplo, 14:00).",
    "invalid_time": "Por favor, ingresa una hora válida en formato 24h (por ejemplo, 14:00).",
    "ask_days": (
        "Por favor, selecciona los días de la semana para el recordatorio. "
        'Envía "Listo" cuando hayas terminado.'
    ),
    "day_added": (
        'Día {day} registrado. Puedes seleccionar más días o enviar "Listo" '
        "cuando hayas terminado."
    ),
    "day_repeated": 'El día {day} ya estaba registrado. Elige otro o envía "Listo".',
    "days_required": 'Selecciona al menos un día antes de enviar "Listo".',
    "invalid_day": 'Por favor, selecciona un día válido o envía "Listo" cuando hayas terminado.',
    "cancelled": "El recordatorio ha sido cancelado.",
    "medicine_scheduled_daily": (
        "Recordatorio establecido: {name}, todos los días a las {time}. "
        "Próximo aviso: {next}."
    ),
    "medicine_scheduled_weekly": (
        "Recordatorio establecido: {name}, los días {days} a las {time}. "
        "Próximo aviso: {next}."
    ),
    "schedule_failed": "No se pudo programar el recordatorio. Por favor, inténtalo de nuevo.",
    # Medicine firing + confirmation
    "medicine_due": "Recordatorio: Es hora de tomar tu medicina {name}. ¿Ya la tomaste?",
    "confirm_taken_ack": "¡Muy bien! Registré que tomaste tu medicina.",
    "confirm_not_taken_ack": "Entendido. Por favor, no olvides tomarla lo antes posible.",
    "confirm_timeout": (
        "No recibí tu confirmación. Si todavía no tomaste {name}, por favor tómala ahora."
    ),
    "cb_not_pending": "Este recordatorio ya no está pendiente.",
    # Water wizard
    "ask_height": "Vamos a calcular cuánta agua necesitas. Ingresa tu estatura en centímetros.",
    "invalid_height": "Por favor, ingresa una estatura válida en centímetros (por ejemplo, 165).",
    "ask_weight": "Ahora ingresa tu peso en libras.",
    "invalid_weight": "Por favor, ingresa un peso válido en libras (por ejemplo, 150).",
    "water_scheduled": (
        "Estatura {height} cm, peso {weight} lb. Necesitas unos {liters} litros de agua "
        "al día: {glasses} vasos de 250 ml. Te recordaré un vaso cada {interval} minutos."
    ),
    "water_due": "💧 Vaso {n} de {total}: es hora de tomar agua.",
    "water_finished": "¡Completaste tu meta de agua!",
    # Listing / deletion
    "no_reminders": "No tienes recordatorios activos.",
    "list_header": "Tus recordatorios activos:",
    "list_item": "{index}. {label}",
    "delete_menu": "Selecciona el recordatorio que deseas eliminar:",
    "delete_use_buttons": 'Usa los botones para elegir el recordatorio, o envía "Cancelar".',
    "deleted": "Recordatorio eliminado: {label}.",
    "delete_cancelled": "Eliminación cancelada.",
    "invalid_selection": "Selección no válida.",
    "cb_menu_expired": "Este menú ya no está activo.",
    # Labels used in lists and menus
    "label_daily": "{name} — diaria a las {time}",
    "label_weekly": "{name} — {days} a las {time}",
    "label_water": "Agua — {glasses} vasos, cada {interval} min",
}


def fmt(key: str, **kwargs) -> str:
    return MESSAGES[key].format(**kwargs)


def weekday_name(index: int) -> str:
    return WEEKDAY_NAMES[index]
