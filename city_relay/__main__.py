from city_relay.cli import main

raise SystemExit(main())
