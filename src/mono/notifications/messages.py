"""Localized push notification copy.

Each entry is a (title, body) pair of ``str.format`` templates. Unknown
locales fall back to the configured default, then to English.
"""

from __future__ import annotations

from mono.config import get_settings

FALLBACK_LOCALE = "en"

MESSAGES: dict[str, dict[str, tuple[str, str]]] = {
    "en": {
        "budget_exceeded": (
            "Budget exceeded! ⚠️",
            "You have used up your whole {category} budget.",
        ),
        "budget_warning": (
            "Approaching your budget limit \U0001f4ca",
            "You have reached 80% of your {category} budget. Time to spend carefully!",
        ),
        "large_transaction": (
            "Large transaction recorded! \U0001f6e1️",
            "A {category} expense of {amount} was recorded. If this wasn't you, please check your account.",
        ),
        "weekly_summary": (
            "Your weekly financial summary is ready! \U0001f4c8",
            "This week you spent ${expense} and earned ${income} in total.",
        ),
        "weekly_top_category": (
            "",
            ' You spent the most in "{category}" (${amount}).',
        ),
        "level_up": (
            "Level up! \U0001f389",
            "You reached level {level}. Keep it going!",
        ),
        "achievement_unlocked": (
            "Achievement unlocked: {name} \U0001f3c6",
            "+{xp} XP: {description}",
        ),
        "engagement_inactive": (
            "We miss you! \U0001f917",
            "You haven't been here for {days} days. How about reviewing your spending?",
        ),
        "engagement_transaction": (
            "Don't forget your expenses! ✍️",
            "You haven't entered a transaction for a week. Keep your income and expenses in check!",
        ),
    },
    "tr": {
        "budget_exceeded": (
            "Bütçe Aşıldı! ⚠️",
            "{category} kategorisindeki bütçeni tamamen doldurdun.",
        ),
        "budget_warning": (
            "Bütçe Sınırına Yaklaşıldı \U0001f4ca",
            "{category} bütçenin %80'ine ulaştın. Dikkatli harcama zamanı!",
        ),
        "large_transaction": (
            "Yüksek Tutarlı Harcama! \U0001f6e1️",
            "{amount} tutarında bir {category} harcaması kaydedildi. "
            "Eğer bu sana ait değilse kontrol etmeni öneririz.",
        ),
        "weekly_summary": (
            "Haftalık Finansal Özetin Hazır! \U0001f4c8",
            "Bu hafta toplamda ${expense} harcadın ve ${income} kazandın.",
        ),
        "weekly_top_category": (
            "",
            ' En çok harcamayı "{category}" kategorisinde yaptın (${amount}).',
        ),
        "level_up": (
            "Seviye Atladın! \U0001f389",
            "{level}. seviyeye ulaştın. Böyle devam!",
        ),
        "achievement_unlocked": (
            "Başarım Açıldı: {name} \U0001f3c6",
            "+{xp} XP: {description}",
        ),
        "engagement_inactive": (
            "Seni özledik! \U0001f917",
            "{days} gündür buralarda yoksun. Harcamalarına bir göz atmaya ne dersin?",
        ),
        "engagement_transaction": (
            "Harcamalarını unutma! ✍️",
            "Bir haftadır işlem girmedin. Gelir ve giderlerini kontrol etmeyi unutma!",
        ),
    },
    "de": {
        "budget_exceeded": (
            "Budget überschritten! ⚠️",
            "Du hast dein {category}-Budget komplett aufgebraucht.",
        ),
        "budget_warning": (
            "Budgetgrenze fast erreicht \U0001f4ca",
            "Du hast 80% deines {category}-Budgets erreicht. Zeit, vorsichtig auszugeben!",
        ),
        "large_transaction": (
            "Hohe Ausgabe erfasst! \U0001f6e1️",
            "Eine {category}-Ausgabe über {amount} wurde erfasst. Falls das nicht du warst, prüfe bitte dein Konto.",
        ),
        "weekly_summary": (
            "Deine Wochenübersicht ist da! \U0001f4c8",
            "Diese Woche hast du insgesamt ${expense} ausgegeben und ${income} eingenommen.",
        ),
        "weekly_top_category": (
            "",
            ' Am meisten hast du in "{category}" ausgegeben (${amount}).',
        ),
        "level_up": (
            "Level aufgestiegen! \U0001f389",
            "Du hast Level {level} erreicht. Weiter so!",
        ),
        "achievement_unlocked": (
            "Erfolg freigeschaltet: {name} \U0001f3c6",
            "+{xp} XP: {description}",
        ),
        "engagement_inactive": (
            "Wir vermissen dich! \U0001f917",
            "Du warst seit {days} Tagen nicht mehr hier. Wie wäre es, wenn du deine Ausgaben überprüfst?",
        ),
        "engagement_transaction": (
            "Vergiss deine Ausgaben nicht! ✍️",
            "Du hast seit einer Woche keine Transaktion mehr eingegeben. "
            "Vergiss nicht, deine Einnahmen und Ausgaben zu kontrollieren!",
        ),
    },
}


def resolve_locale(locale: str | None) -> str:
    """Pick a supported locale: the user's, else the configured default, else English."""
    if locale and locale.lower() in MESSAGES:
        return locale.lower()
    default = get_settings().default_locale.lower()
    return default if default in MESSAGES else FALLBACK_LOCALE


def render(key: str, locale: str | None = None, **params: object) -> tuple[str, str]:
    """Render the (title, body) pair for ``key`` in ``locale``.

    Raises:
        KeyError: If ``key`` is not a known message.
    """
    catalog = MESSAGES[resolve_locale(locale)]
    title, body = catalog.get(key) or MESSAGES[FALLBACK_LOCALE][key]
    return title.format(**params), body.format(**params)
