"""
Human-readable descriptions of weather and traffic impact.

Descriptions come from (condition, severity) templates, with a generic
fallback for combinations that have no dedicated wording.
"""
from typing import Any, Dict, List, Optional
import logging


logger = logging.getLogger(__name__)


class ImpactExplainer:
    """
    Generates driver- and dispatcher-facing impact descriptions.

    Templates can be overridden per condition, which keeps wording out of
    the feature calculations.
    """

    NO_IMPACT_WEATHER = "Clear weather conditions with no impact on travel time."

    DEFAULT_WEATHER_TEMPLATES: Dict[str, Dict[str, str]] = {
        'rain': {
            'low': "Light rain with minimal impact on travel time.",
            'moderate': "Moderate rain reducing visibility and average speeds.",
            'high': "Heavy rain significantly affecting road conditions and visibility.",
            'severe': "Severe rainfall creating hazardous driving conditions.",
        },
        'snow': {
            'low': "Light snow with minimal accumulation on roadways.",
            'moderate': "Moderate snowfall affecting road conditions and visibility.",
            'high': "Heavy snow significantly reducing speeds and creating difficult driving conditions.",
            'severe': "Severe snowstorm with hazardous road conditions.",
        },
        'fog': {
            'low': "Patchy fog with minimal impact on visibility.",
            'moderate': "Moderate fog reducing visibility and requiring reduced speeds.",
            'high': "Dense fog significantly limiting visibility and requiring caution.",
            'severe': "Extremely dense fog creating hazardous driving conditions.",
        },
        'thunderstorm': {
            'low': "Distant thunderstorm with minimal impact on travel.",
            'moderate': "Thunderstorm in the vicinity with potential for heavy rain.",
            'high': "Severe thunderstorm with heavy rain and strong winds.",
            'severe': "Dangerous thunderstorm with potential for flash flooding and high winds.",
        },
        'clouds': {
            'low': "Cloudy conditions with no significant impact on travel.",
            'moderate': "Overcast conditions with potential for reduced visibility.",
            'high': "Heavy cloud cover with significantly reduced visibility.",
            'severe': "Extremely low cloud ceiling creating hazardous conditions.",
        },
        'clear': {
            'low': "Clear conditions with excellent visibility.",
            'moderate': "Clear conditions with good visibility.",
            'high': "Clear conditions with moderate visibility.",
            'severe': "Clear conditions with poor visibility due to other factors.",
        },
    }

    DEFAULT_TRAFFIC_TEMPLATES: Dict[str, str] = {
        'light': "Light traffic conditions with minimal impact on travel time.",
        'moderate': "Moderate traffic congestion adding some delay to the journey.",
        'heavy': "Heavy traffic congestion significantly impacting travel time.",
        'severe': "Severe traffic conditions causing major delays.",
        'DEFAULT': "Current traffic conditions may affect travel time.",
    }

    def __init__(
        self,
        weather_templates: Optional[Dict[str, Dict[str, str]]] = None,
        traffic_templates: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize explainer with templates.

        Args:
            weather_templates: condition -> severity -> text. If None, uses defaults.
            traffic_templates: traffic condition -> text. If None, uses defaults.
        """
        self.weather_templates = weather_templates or self.DEFAULT_WEATHER_TEMPLATES
        self.traffic_templates = traffic_templates or self.DEFAULT_TRAFFIC_TEMPLATES

    def describe_weather(self, condition: str, severity: str) -> str:
        """Describe weather impact, e.g. ('rain', 'moderate')."""
        if severity == "none":
            return self.NO_IMPACT_WEATHER

        description = self.weather_templates.get(condition, {}).get(severity)
        if description is None:
            logger.debug(f"No weather template for {condition}/{severity}")
            return f"{condition} conditions affecting travel time."
        return description

    def describe_traffic(self, condition: str, incidents: Optional[List[Dict[str, Any]]] = None) -> str:
        """Describe traffic impact, mentioning reported incidents if any."""
        description = self.traffic_templates.get(condition, self.traffic_templates.get('DEFAULT', ''))

        incidents = incidents or []
        if len(incidents) == 1:
            incident = incidents[0]
            description += (
                f" There is 1 reported {incident.get('type', 'incident')} "
                f"({incident.get('severity', 'unknown')}) in the area."
            )
        elif incidents:
            description += f" There are {len(incidents)} reported incidents in the area."

        return description
