import os
from dotenv import load_dotenv

load_dotenv()

RESPONSE_TRACKER_DB_URL = os.getenv("RESPONSE_TRACKER_DB_URL", "sqlite:///response_tracker.db")

# strftime pattern for dates in the CSV export; match what the spreadsheet expects
CSV_DATE_FORMAT = os.getenv("CSV_DATE_FORMAT", "%Y-%m-%d")
CSV_EXPORT_FILENAME = os.getenv("CSV_EXPORT_FILENAME", "EmergencyResponses.csv")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
