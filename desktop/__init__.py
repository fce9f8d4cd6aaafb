"""Desktop-Integration: App-Erkennung, Zwischenablage, Einfügen, Berechtigungen, Sounds."""
