"""CoachCRM access control and usage metering."""
