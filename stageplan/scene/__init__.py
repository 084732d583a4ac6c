from stageplan.scene.plan_renderer import (
    Fixture2D,
    FixtureModel2D,
    PlanScene,
    Truss2D,
    demo_scene,
    draw_plan,
    fit_view,
)

__all__ = ["Fixture2D", "FixtureModel2D", "PlanScene", "Truss2D", "demo_scene", "draw_plan", "fit_view"]
