from agraph.config import setup_logging
from agraph.expression import build_agraph
import torch


def run_local_optimization_demo():
    print("=== Local Optimization Demo ===")
    print("Goal: fit C_0, C_1 so that C_0 * sin(X_0) + C_1 matches 3 sin(x) - 0.5")

    setup_logging("INFO")
    torch.manual_seed(0)

    x = torch.linspace(-3.0, 3.0, 64, dtype=torch.float64).reshape(-1, 1)
    y = 3.0 * torch.sin(x) - 0.5

    graph = build_agraph("C_0 * sin(X_0) + C_1")
    print(f"Equation: {graph.format(raw=True)}")
    print(f"Needs local optimization: {graph.needs_local_optimization()}")

    params = graph.get_local_optimization_params().requires_grad_(True)
    optimizer = torch.optim.Adam([params], lr=0.1)

    for step in range(300):
        optimizer.zero_grad()
        graph.set_local_optimization_params(params.detach())

        # chain rule through the per-sample constant gradient
        values, dvalues_dc = graph.evaluate_with_param_gradient(x)
        residual = values - y
        loss = torch.mean(residual ** 2)
        params.grad = torch.mean(2.0 * residual * dvalues_dc, dim=0)
        optimizer.step()

        if step % 50 == 0:
            print(f"Step {step}: loss={loss.item():.6f}, params={params.detach().tolist()}")

    graph.set_local_optimization_params(params.detach())
    graph.set_fitness(torch.mean((graph.evaluate(x) - y) ** 2).item())
    print(f"Fitted equation: {graph}")
    print(f"Fitness (MSE): {graph.get_fitness():.6g}")
    print(f"Complexity: {graph.get_complexity()}")


if __name__ == "__main__":
    run_local_optimization_demo()
