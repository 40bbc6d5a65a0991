LOGO = r"""
       _ _                    __ _
  __ _(_) |_ ___  _ __  ___  / _| | _____      __
 / _` | | __/ _ \| '_ \/ __|| |_| |/ _ \ \ /\ / /
| (_| | | || (_) | |_) \__ \|  _| | (_) \ V  V /
 \__, |_|\__\___/| .__/|___/|_| |_|\___/ \_/\_/
 |___/           |_|
"""
