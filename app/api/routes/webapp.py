"""
Calendar Web App Endpoints

The date picker opened from the 📆 keyboard button. The page shows a month
grid with per-day availability and returns the chosen date to the bot with
Telegram.WebApp.sendData({date, serviceId, source}).
"""

import json
import logging
from datetime import datetime, timezone
from string import Template
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse

from app.config import settings
from app.core.i18n import detect_locale
from app.core.scheduling import (
    ServiceCatalog,
    SlotQueryEngine,
    get_service_catalog,
    get_slot_query_engine,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webapp", tags=["Calendar"])

AVAILABILITY_PATH = "/webapp/calendar/availability"

PAGE_TEXTS = {
    "ru": {
        "title": "Выбор даты",
        "send": "Отправить",
        "sent": "Отправлено… можно закрыть окно.",
        "error": "Не удалось отправить данные. Откройте из Telegram.",
        "loadError": "Не удалось загрузить расписание.",
    },
    "en": {
        "title": "Select Date",
        "send": "Send",
        "sent": "Sent… you can close the window.",
        "error": "Failed to send data. Please open from Telegram.",
        "loadError": "Could not load the schedule.",
    },
    "he": {
        "title": "בחירת תאריך",
        "send": "שליחה",
        "sent": "נשלח… ניתן לסגור את החלון.",
        "error": "לא ניתן לשלוח נתונים. פתחו מטלגרם.",
        "loadError": "לא ניתן לטעון את הלוח.",
    },
}

CALENDAR_PAGE = Template("""<!doctype html>
<html lang="$lang" dir="$direction">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>$title</title>
  <script src="https://telegram.org/js/telegram-web-app.js"></script>
  <style>
    body{font-family:system-ui,-apple-system,Segoe UI,Roboto,Ubuntu;margin:0;padding:16px;
         background:var(--tg-theme-bg-color,#111);color:var(--tg-theme-text-color,#eee)}
    h1{font-size:18px;margin:0 0 12px}
    .nav{display:flex;justify-content:space-between;align-items:center;margin-bottom:8px}
    .nav button{background:none;border:none;color:inherit;font-size:20px}
    .grid{display:grid;grid-template-columns:repeat(7,1fr);gap:6px}
    .day{padding:8px 0;border-radius:8px;border:none;background:#1b1b1b;color:inherit}
    .day small{display:block;font-size:10px;opacity:.6}
    .day[disabled]{opacity:.3}
    .day.selected{background:#4b8ef7;color:#fff}
    .btn{display:block;width:100%;margin-top:12px;padding:12px;border-radius:10px;border:none;
         font-size:16px;background:#4b8ef7;color:#fff}
    .btn[disabled]{background:#333;color:#777}
    #status{margin-top:8px;font-size:13px;color:#999}
  </style>
</head>
<body>
  <h1>$title</h1>
  <div class="nav">
    <button id="prev" type="button">‹</button>
    <span id="month"></span>
    <button id="next" type="button">›</button>
  </div>
  <div id="grid" class="grid"></div>
  <button id="send" class="btn" type="button" disabled>$send</button>
  <div id="status"></div>
  <script>
    const config = $config;
    const tg = window.Telegram && window.Telegram.WebApp;
    if (tg) { tg.ready(); tg.expand(); }

    const today = new Date();
    let year = today.getFullYear();
    let month = today.getMonth();
    let selected = null;

    const grid = document.getElementById('grid');
    const sendBtn = document.getElementById('send');
    const status = document.getElementById('status');

    function iso(y, m, d) {
      return y + '-' + String(m + 1).padStart(2, '0') + '-' + String(d).padStart(2, '0');
    }

    async function load() {
      document.getElementById('month').textContent =
        new Date(year, month, 1).toLocaleDateString(config.lang, {month: 'long', year: 'numeric'});
      let availability = {};
      try {
        const url = config.availabilityPath + '?serviceId=' + config.serviceId +
          '&year=' + year + '&month=' + (month + 1);
        const response = await fetch(url);
        if (!response.ok) throw new Error(response.statusText);
        availability = await response.json();
        status.textContent = '';
      } catch (e) {
        status.textContent = config.texts.loadError;
      }
      render(availability);
    }

    function render(availability) {
      grid.innerHTML = '';
      const days = new Date(year, month + 1, 0).getDate();
      const offset = (new Date(year, month, 1).getDay() + 6) % 7;
      for (let i = 0; i < offset; i++) grid.appendChild(document.createElement('span'));
      for (let d = 1; d <= days; d++) {
        const info = availability[String(d)];
        const button = document.createElement('button');
        button.className = 'day';
        button.type = 'button';
        button.innerHTML = d + '<small>' + (info ? info.available + '/' + info.total : '--') + '</small>';
        const past = new Date(year, month, d + 1) <= today;
        button.disabled = past || !info || info.available === 0;
        const value = iso(year, month, d);
        if (value === selected) button.classList.add('selected');
        button.addEventListener('click', () => {
          selected = value;
          sendBtn.disabled = false;
          render(availability);
        });
        grid.appendChild(button);
      }
    }

    document.getElementById('prev').addEventListener('click', () => {
      month -= 1; if (month < 0) { month = 11; year -= 1; } load();
    });
    document.getElementById('next').addEventListener('click', () => {
      month += 1; if (month > 11) { month = 0; year += 1; } load();
    });

    sendBtn.addEventListener('click', () => {
      if (!selected) return;
      const payload = {date: selected, serviceId: config.serviceId, source: 'calendar-webapp'};
      try {
        tg.sendData(JSON.stringify(payload));
        status.textContent = config.texts.sent;
      } catch (e) {
        status.textContent = config.texts.error;
      }
    });

    load();
  </script>
</body>
</html>
""")


def render_calendar_page(service_id: Optional[int], cutoff_minutes: int, lang: str) -> str:
    """Render the picker page for a service in a locale."""
    config = {
        "lang": lang,
        "serviceId": service_id,
        "cutoffMin": cutoff_minutes,
        "availabilityPath": AVAILABILITY_PATH,
        "texts": PAGE_TEXTS[lang],
    }
    return CALENDAR_PAGE.substitute(
        lang=lang,
        direction="rtl" if lang == "he" else "ltr",
        title=PAGE_TEXTS[lang]["title"],
        send=PAGE_TEXTS[lang]["send"],
        # "</" would end the script block early
        config=json.dumps(config, ensure_ascii=False).replace("</", "<\\/"),
    )


@router.get(
    "/calendar",
    response_class=HTMLResponse,
    summary="Calendar picker page",
)
async def calendar_page(
    service_id: Optional[int] = Query(None, alias="serviceId"),
    cutoff_min: Optional[int] = Query(None, alias="cutoffMin"),
    lang: Optional[str] = Query(None),
) -> HTMLResponse:
    """Serve the date picker opened from the bot."""
    cutoff = cutoff_min if cutoff_min is not None else settings.booking_cutoff_min
    return HTMLResponse(render_calendar_page(service_id, cutoff, detect_locale(lang)))


@router.get(
    "/calendar/availability",
    summary="Per-day slot availability",
    responses={
        400: {"description": "serviceId missing"},
        404: {"description": "Service not found"},
    },
)
async def calendar_availability(
    service_id: Optional[int] = Query(None, alias="serviceId"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    catalog: ServiceCatalog = Depends(get_service_catalog),
    slot_engine: SlotQueryEngine = Depends(get_slot_query_engine),
) -> dict[str, dict[str, int]]:
    """
    Slot counts per day of a month.

    Returns:
        {"<day>": {"total": n, "available": m}} for days that have slots
    """
    if service_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="serviceId is required",
        )

    service = await catalog.get_service(service_id)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service not found",
        )

    now = datetime.now(timezone.utc)
    availability = await slot_engine.month_availability(
        service.id,
        year or now.year,
        month or now.month,
    )
    return {str(day): counts for day, counts in availability.items()}
