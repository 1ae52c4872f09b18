"""Practice EMR application: patients, intake forms, tasks, notifications and calendar sync."""
