"""
Timeline Service

Date cascade microservice for the campaign planner providing:
- Shift previews (affected children, direction, undated children)
- Campaign reschedules that carry their tasks along
- Project reschedules that carry campaigns and their tasks along
- Optional clamping of children to the parent's new window

Port: 8260
"""

__version__ = "1.0.0"
__service__ = "timeline_service"
