"""Message catalog for the supported locales.

Placeholders use str.format syntax. A key missing from a locale falls back
to English, then to the key itself.
"""

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "start.welcome": "👋 Welcome! Pick a service to book an appointment.\n/my — your appointments, /lang — language",
        "help.text": "/book — book an appointment\n/my — your appointments\n/lang — change language",
        "book.chooseService": "Choose a service:",
        "book.noServices": "No services are available yet. Please try again later.",
        "book.openCalendar": "Tap 📆 below to pick a date.",
        "book.chooseTime": "Available times on {date}:",
        "book.noSlotsDay": "No free slots on {date}. Try another day.",
        "book.aborted": "Booking cancelled.",
        "group.openPm": "Booking continues in a private chat with the bot.",
        "group.openButton": "➡️ Open bot",
        "progress.confirming": "⏳ Confirming…",
        "progress.dateReceived": "📅 Date received, looking for free slots…",
        "confirm.ok": "✅ Your appointment is confirmed!",
        "confirm.details": "Service: {service}\nTime: {when}",
        "errors.generic": "Something went wrong. Please try again.",
        "errors.slotNotFound": "This slot no longer exists. Please choose another time.",
        "errors.slotTaken": "Sorry, this slot has just been taken. Please choose another time.",
        "errors.serviceNotFound": "This service is not available.",
        "errors.webappDate": "The calendar did not send a date. Please pick a date again.",
        "errors.webappService": "The calendar did not send a service. Please start again with /book.",
        "errors.webappPayload": "Could not read the calendar response. Please try again.",
        "lang.choose": "Choose a language:",
        "lang.set": "Language set: {language}",
        "lang.unsupported": "Language {code} is not supported.",
        "my.noAppointments": "You have no upcoming appointments.",
        "my.time": "Time",
        "my.cancel": "❌ Cancel",
        "my.cancelled": "Appointment cancelled.",
        "my.appointmentNotFound": "Appointment not found.",
        "admin.notifyHeader": "🔔 New booking",
        "admin.cancelHeader": "❌ Booking cancelled",
        "admin.user": "User",
        "admin.service": "Service",
        "admin.time": "Time",
    },
    "ru": {
        "start.welcome": "👋 Добро пожаловать! Выберите услугу для записи.\n/my — мои записи, /lang — язык",
        "help.text": "/book — записаться\n/my — мои записи\n/lang — сменить язык",
        "book.chooseService": "Выберите услугу:",
        "book.noServices": "Пока нет доступных услуг. Повторите позже.",
        "book.openCalendar": "Нажмите 📆 ниже, чтобы выбрать дату.",
        "book.chooseTime": "Свободное время на {date}:",
        "book.noSlotsDay": "На {date} свободных слотов нет. Выберите другой день.",
        "book.aborted": "Запись отменена.",
        "group.openPm": "Запись продолжается в личном чате с ботом.",
        "group.openButton": "➡️ Открыть бота",
        "progress.confirming": "⏳ Подтверждаем…",
        "progress.dateReceived": "📅 Дата получена, ищем свободные слоты…",
        "confirm.ok": "✅ Запись подтверждена!",
        "confirm.details": "Услуга: {service}\nВремя: {when}",
        "errors.generic": "Что-то пошло не так. Попробуйте ещё раз.",
        "errors.slotNotFound": "Этот слот больше не существует. Выберите другое время.",
        "errors.slotTaken": "Увы, этот слот только что заняли. Выберите другое время.",
        "errors.serviceNotFound": "Эта услуга недоступна.",
        "errors.webappDate": "Календарь не передал дату. Выберите дату ещё раз.",
        "errors.webappService": "Календарь не передал услугу. Начните заново с /book.",
        "errors.webappPayload": "Не удалось прочитать ответ календаря. Попробуйте ещё раз.",
        "lang.choose": "Выберите язык:",
        "lang.set": "Язык установлен: {language}",
        "lang.unsupported": "Язык {code} не поддерживается.",
        "my.noAppointments": "У вас нет предстоящих записей.",
        "my.time": "Время",
        "my.cancel": "❌ Отменить",
        "my.cancelled": "Запись отменена.",
        "my.appointmentNotFound": "Запись не найдена.",
        "admin.notifyHeader": "🔔 Новая запись",
        "admin.cancelHeader": "❌ Отмена записи",
        "admin.user": "Клиент",
        "admin.service": "Услуга",
        "admin.time": "Время",
    },
    "he": {
        "start.welcome": "👋 ברוכים הבאים! בחרו שירות כדי לקבוע תור.\n/my — התורים שלי, /lang — שפה",
        "help.text": "/book — קביעת תור\n/my — התורים שלי\n/lang — החלפת שפה",
        "book.chooseService": "בחרו שירות:",
        "book.noServices": "אין עדיין שירותים זמינים. נסו שוב מאוחר יותר.",
        "book.openCalendar": "לחצו על 📆 למטה כדי לבחור תאריך.",
        "book.chooseTime": "שעות פנויות ב-{date}:",
        "book.noSlotsDay": "אין תורים פנויים ב-{date}. נסו יום אחר.",
        "book.aborted": "קביעת התור בוטלה.",
        "group.openPm": "קביעת התור ממשיכה בצ'אט פרטי עם הבוט.",
        "group.openButton": "➡️ פתיחת הבוט",
        "progress.confirming": "⏳ מאשרים…",
        "progress.dateReceived": "📅 התאריך התקבל, מחפשים תורים פנויים…",
        "confirm.ok": "✅ התור שלכם אושר!",
        "confirm.details": "שירות: {service}\nשעה: {when}",
        "errors.generic": "משהו השתבש. נסו שוב.",
        "errors.slotNotFound": "התור הזה כבר לא קיים. בחרו שעה אחרת.",
        "errors.slotTaken": "מצטערים, התור הזה נתפס הרגע. בחרו שעה אחרת.",
        "errors.serviceNotFound": "השירות אינו זמין.",
        "errors.webappDate": "היומן לא שלח תאריך. בחרו תאריך שוב.",
        "errors.webappService": "היומן לא שלח שירות. התחילו מחדש עם /book.",
        "errors.webappPayload": "לא ניתן לקרוא את תשובת היומן. נסו שוב.",
        "lang.choose": "בחרו שפה:",
        "lang.set": "השפה נקבעה: {language}",
        "lang.unsupported": "השפה {code} אינה נתמכת.",
        "my.noAppointments": "אין לכם תורים קרובים.",
        "my.time": "שעה",
        "my.cancel": "❌ ביטול",
        "my.cancelled": "התור בוטל.",
        "my.appointmentNotFound": "התור לא נמצא.",
        "admin.notifyHeader": "🔔 תור חדש",
        "admin.cancelHeader": "❌ תור בוטל",
        "admin.user": "לקוח",
        "admin.service": "שירות",
        "admin.time": "שעה",
    },
}

LANGUAGE_NAMES: dict[str, str] = {
    "ru": "🇷🇺 Русский",
    "en": "🇺🇸 English",
    "he": "🇮🇱 עברית",
}
