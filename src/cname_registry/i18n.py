"""
Internationalization (i18n) module for the CNAME registry engine.

Provides translations for all user-facing CLI messages in German (de) and
English (en).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Validation messages
    "validate.ok": {
        "de": "{file} ist korrekt formatiert und sortiert.",
        "en": "{file} is correctly formatted and sorted.",
    },
    "validate.failed": {
        "de": "{file} entspricht nicht der kanonischen Form ({count} Abweichung(en)).",
        "en": "{file} does not match its canonical form ({count} difference(s)).",
    },
    "validate.fixed": {
        "de": "{file} wurde in kanonischer Form neu geschrieben.",
        "en": "{file} rewritten in canonical form.",
    },
    "validate.error": {
        "de": "Validierung von {file} fehlgeschlagen: {error}",
        "en": "Validation of {file} failed: {error}",
    },
    "validate.warning": {
        "de": "Warnung Zeile {line}: {message}",
        "en": "Warning line {line}: {message}",
    },

    # Diff lines
    "diff.missing": {
        "de": "Erwartete Zeile nach Zeile {line}: {expected}",
        "en": "Expected line after line {line}: {expected}",
    },
    "diff.mismatch": {
        "de": "Zeile {line}: erwartet {expected}, gefunden {found}",
        "en": "Line {line}: expected {expected}, found {found}",
    },
    "diff.extra": {
        "de": "Zeile {line}: unerwartete Zeile {found}",
        "en": "Line {line}: unexpected line {found}",
    },

    # Regeneration / fetch
    "regenerate.written": {
        "de": "Kanonische Registry geschrieben nach: {path}",
        "en": "Canonical registry written to: {path}",
    },
    "fetch.written": {
        "de": "Registry-Datei gespeichert unter: {path}",
        "en": "Registry file saved to: {path}",
    },

    # Probing
    "probe.starting": {
        "de": "Prüfe {count} Einträge unter {domain}...",
        "en": "Probing {count} entries on {domain}...",
    },
    "probe.failed_entry": {
        "de": "{subdomain} -> {target}: HTTP: {http} HTTPS: {https}",
        "en": "{subdomain} -> {target}: HTTP: {http} HTTPS: {https}",
    },
    "probe.summary": {
        "de": "Zusammenfassung: {failed} fehlgeschlagen, {passed} erfolgreich",
        "en": "Summary: {failed} failed, {passed} passed",
    },
    "probe.results_written": {
        "de": "Ergebnisse geschrieben nach: {path}",
        "en": "Results written to: {path}",
    },
    "probe.okay": {
        "de": "OK",
        "en": "Okay",
    },

    # Cache management
    "cache.cleared": {
        "de": "Cache '{name}' gelöscht.",
        "en": "Cache '{name}' cleared.",
    },
    "cache.not_found": {
        "de": "Kein Cache unter '{name}' gespeichert.",
        "en": "No cache stored under '{name}'.",
    },
    "cache.empty": {
        "de": "Keine Cache-Einträge vorhanden.",
        "en": "No cache entries found.",
    },

    # Errors
    "error.generic": {
        "de": "Fehler: {error}",
        "en": "Error: {error}",
    },
    "error.config_load": {
        "de": "Konfiguration konnte nicht geladen werden: {path}",
        "en": "Could not load config from {path}",
    },

    # Configuration management
    "config.not_found": {
        "de": "Keine Konfiguration gefunden unter: {path}",
        "en": "No configuration found at: {path}",
    },
    "config.init_hint": {
        "de": "Mit 'config init' wird eine Standardkonfiguration angelegt.",
        "en": "Use 'config init' to create a default configuration.",
    },
    "config.header": {
        "de": "Konfiguration aus: {path}",
        "en": "Configuration from: {path}",
    },
    "config.language": {
        "de": "  Sprache: {value}",
        "en": "  Language: {value}",
    },
    "config.domain": {
        "de": "  Registry-Domain: {value}",
        "en": "  Registry domain: {value}",
    },
    "config.source": {
        "de": "  Quelle: {value}",
        "en": "  Source: {value}",
    },
    "config.cache_dir": {
        "de": "  Cache-Verzeichnis: {value}",
        "en": "  Cache directory: {value}",
    },
    "config.policy": {
        "de": "  Fehlerregel: {value}",
        "en": "  Failure policy: {value}",
    },
    "config.timeout": {
        "de": "  Zeitlimit pro Anfrage: {value}s",
        "en": "  Probe timeout: {value}s",
    },
    "config.log_level": {
        "de": "  Log-Stufe: {value}",
        "en": "  Log level: {value}",
    },
    "config.exists": {
        "de": "Konfiguration existiert bereits unter: {path}",
        "en": "Configuration already exists at: {path}",
    },
    "config.force_hint": {
        "de": "Mit --force wird sie überschrieben.",
        "en": "Use --force to overwrite.",
    },
    "config.created": {
        "de": "Konfiguration erstellt unter: {path}",
        "en": "Configuration created at: {path}",
    },
    "config.valid": {
        "de": "Konfiguration unter {path} ist gültig.",
        "en": "Configuration at {path} is valid.",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'validate.ok')
        language: Language code ('de' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('cache.cleared', 'en', name='validateCNAMEs')
        "Cache 'validateCNAMEs' cleared."
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Missing format arguments leave the template as-is
            pass

    return message


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }
