"""On-device face enrollment, liveness and identification for the attendance kiosk."""
