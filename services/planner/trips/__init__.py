from services.planner.trips.schema import Activity, DayPlan, Itinerary, parse_itinerary
from services.planner.trips.state import TripRecord

__all__ = ["Activity", "DayPlan", "Itinerary", "TripRecord", "parse_itinerary"]
