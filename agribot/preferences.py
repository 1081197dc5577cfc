import logging
import os

import pandas as pd

logger = logging.getLogger(__name__)

PREFERENCE_COLUMNS = ['key', 'value']
PREFERRED_LANGUAGE_KEY = 'preferred_language'


class PreferenceStore:
    """Local key/value preferences kept in a two-column CSV file."""

    def __init__(self, path):
        self.path = path

    def _load_frame(self):
        if not os.path.exists(self.path):
            logger.debug(f"{self.path} not found. No stored preferences.")
            return pd.DataFrame(columns=PREFERENCE_COLUMNS)
        try:
            df = pd.read_csv(self.path, encoding='utf-8', dtype=str)
        except pd.errors.EmptyDataError:
            logger.warning(f"{self.path} is empty. Ignoring stored preferences.")
            return pd.DataFrame(columns=PREFERENCE_COLUMNS)
        except (OSError, pd.errors.ParserError) as e:
            logger.error(f"Error reading preferences from {self.path}: {e}", exc_info=True)
            return pd.DataFrame(columns=PREFERENCE_COLUMNS)

        if not all(col in df.columns for col in PREFERENCE_COLUMNS):
            logger.warning(f"Preferences file {self.path} is missing expected columns. Has: {df.columns.tolist()}.")
            return pd.DataFrame(columns=PREFERENCE_COLUMNS)
        df = df[PREFERENCE_COLUMNS].dropna(subset=['key']).copy()
        df['key'] = df['key'].astype(str).str.strip()
        return df

    def get(self, key):
        df = self._load_frame()
        match = df.loc[df['key'] == key, 'value']
        if match.empty or pd.isna(match.iloc[-1]):
            return None
        value = str(match.iloc[-1]).strip()
        return value or None

    def set(self, key, value):
        df = self._load_frame()
        df = df[df['key'] != key]
        new_row = pd.DataFrame([{'key': key, 'value': str(value)}], columns=PREFERENCE_COLUMNS)
        df = new_row if df.empty else pd.concat([df, new_row], ignore_index=True)
        try:
            directory = os.path.dirname(self.path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory)
            df.to_csv(self.path, index=False, encoding='utf-8')
            logger.info(f"Saved preference '{key}' to {self.path}.")
        except OSError as e:
            logger.error(f"Could not save preference '{key}' to {self.path}: {e}", exc_info=True)

    def preferred_language(self):
        return self.get(PREFERRED_LANGUAGE_KEY)

    def set_preferred_language(self, code):
        self.set(PREFERRED_LANGUAGE_KEY, code)
