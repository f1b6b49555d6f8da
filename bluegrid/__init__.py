"""BlueGrid water-infrastructure portal: damage reports, repair workflow and supply schedules."""
