"""Last-write-wins sets, held in memory or stored in SQLite."""